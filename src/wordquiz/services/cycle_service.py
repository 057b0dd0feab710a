"""Service for cycling through a word bank without repeats."""
import logging
import random
from typing import Dict, List, Optional, Sequence, TypeVar, Union

from wordquiz.config import settings
from wordquiz.models.word_models import (
    CycleState,
    EndOfCategory,
    PreparedWord,
    WordBank,
    WordEntry,
    WordMeta,
    cache_key,
)
from wordquiz.monitoring import categories_exhausted, words_served
from wordquiz.services.storage_service import PersistentStore
from wordquiz.services.word_loader import WordBankLoader

logger = logging.getLogger(__name__)

T = TypeVar("T")

CYCLE_KEY_PREFIX = "cycle_"
OPTIONS_PER_WORD = 4


def shuffle(items: Sequence[T], rng: random.Random) -> List[T]:
    """Fisher-Yates shuffle into a new list."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class CycleSelector:
    """Serves every word of a bank exactly once, in shuffled order.

    A (difficulty, category) pair moves from uninitialized to cycling when
    its first word is requested, and to exhausted once the queue runs dry.
    Only a reset brings it back to cycling. Cycle state is written to the
    store after every draw so a restarted process resumes the same cycle.
    """

    def __init__(
        self,
        loader: WordBankLoader,
        store: Optional[PersistentStore] = None,
        rng: Optional[random.Random] = None,
        persist: Optional[bool] = None,
    ):
        self.loader = loader
        self.store = store
        self.rng = rng or random.Random()
        self.persist = settings.storage.persist_cycles if persist is None else persist
        self.cycle_state: Dict[str, CycleState] = {}

    def _storage_key(self, key: str) -> str:
        return f"{CYCLE_KEY_PREFIX}{key}"

    def _save_state(self, key: str) -> None:
        if self.persist and self.store is not None:
            self.store.set(self._storage_key(key), self.cycle_state[key].to_data())

    def _restore_state(self, key: str, bank: WordBank) -> Optional[CycleState]:
        if not self.persist or self.store is None:
            return None
        saved = self.store.get(self._storage_key(key))
        if saved is None:
            return None
        state = CycleState.from_data(saved, bank.terms())
        if state is None:
            logger.warning(f"Discarding stored cycle for {key}: it does not match the word bank")
        return state

    def init_cycle(self, key: str, bank: WordBank, reshuffle: bool = True) -> CycleState:
        """Start a new cycle over every index of the bank."""
        indices = list(range(len(bank)))
        order = shuffle(indices, self.rng) if reshuffle else indices
        self.cycle_state[key] = CycleState(queue=order, visited=set())
        self._save_state(key)
        logger.debug(f"Initialized cycle for {key} with {len(order)} words")
        return self.cycle_state[key]

    def _ensure_state(self, key: str, bank: WordBank) -> CycleState:
        state = self.cycle_state.get(key)
        if state is None:
            state = self._restore_state(key, bank)
            if state is not None:
                self.cycle_state[key] = state
                logger.debug(f"Restored cycle for {key}, {len(state.queue)} words remaining")
            else:
                state = self.init_cycle(key, bank, reshuffle=True)
        return state

    async def next(self, difficulty: str, category: str) -> Union[PreparedWord, EndOfCategory, None]:
        """Next word of the cycle, EndOfCategory once exhausted, None if no words exist."""
        bank = (await self.loader.load(difficulty, category)).bank
        if len(bank) == 0:
            logger.error(f"No words available for {difficulty}/{category}")
            return None

        key = bank.key
        state = self._ensure_state(key, bank)

        if not state.queue:
            return EndOfCategory(
                difficulty=difficulty,
                category=category,
                total=len(bank),
                visited_count=len(state.visited),
                message=f"All {len(bank)} words completed for {difficulty}/{category}.",
            )

        index = state.queue.pop(0)
        entry = bank[index]
        state.visited.add(entry.term)
        self._save_state(key)
        words_served.labels(difficulty=difficulty, category=category).inc()

        remaining = len(state.queue)
        if remaining == 0:
            categories_exhausted.labels(difficulty=difficulty, category=category).inc()
            logger.info(f"Served the last word of {difficulty}/{category}")

        return self.prepare_word(
            entry,
            WordMeta(
                difficulty=difficulty,
                category=category,
                remaining=remaining,
                total=len(bank),
                is_last_word=remaining == 0,
            ),
        )

    def prepare_word(self, entry: WordEntry, meta: WordMeta) -> PreparedWord:
        """Attach shuffled answer options so the correct one moves around."""
        options = [entry.correct_definition, *entry.incorrect_definitions[:OPTIONS_PER_WORD - 1]]
        return PreparedWord(
            term=entry.term,
            pronunciation=entry.pronunciation,
            options=tuple(shuffle(options, self.rng)),
            correct_answer=entry.correct_definition,
            meta=meta,
        )

    def remaining(self, difficulty: str, category: str) -> Optional[int]:
        """Words left in the current cycle, or None if no cycle is active."""
        state = self.cycle_state.get(cache_key(difficulty, category))
        return len(state.queue) if state else None

    def reset_cycle(self, difficulty: str, category: str, reshuffle: bool = True) -> None:
        """Restart the cycle of one pair.

        Starts over right away when the bank is already loaded; otherwise the
        next call to next() starts a fresh cycle.
        """
        bank = self.loader.get_cached(difficulty, category)
        if bank is not None and len(bank) > 0:
            self.init_cycle(bank.key, bank, reshuffle)
        else:
            key = cache_key(difficulty, category)
            self.cycle_state.pop(key, None)
            if self.persist and self.store is not None:
                self.store.remove(self._storage_key(key))

    def reset_used_words(self) -> None:
        """Forget every cycle so the next request for any pair starts fresh."""
        keys = set(self.cycle_state)
        if self.persist and self.store is not None:
            keys.update(
                key[len(CYCLE_KEY_PREFIX):]
                for key in self.store.export_all()
                if key.startswith(CYCLE_KEY_PREFIX)
            )
            for key in keys:
                self.store.remove(self._storage_key(key))
        self.cycle_state.clear()
        logger.debug(f"Reset {len(keys)} word cycles")
