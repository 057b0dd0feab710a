"""Game-facing operations tying the selector, loader and ledger together."""
import logging
import random
from typing import Any, Callable, Dict, Optional, Union

from wordquiz.config import settings
from wordquiz.models.word_models import (
    AnswerOutcome,
    EndOfCategory,
    GameStats,
    PreloadReport,
    PreparedWord,
    Progress,
)
from wordquiz.services.cycle_service import CycleSelector
from wordquiz.services.progress_service import ProgressLedger, round_percent
from wordquiz.services.storage_service import PersistentStore
from wordquiz.services.timer_service import AnswerTimer
from wordquiz.services.word_loader import ProgressCallback, WordBankLoader

logger = logging.getLogger(__name__)

NextWord = Union[PreparedWord, EndOfCategory, None]


class QuizService:
    """One player's game session.

    Score, streak and level are kept in memory as well as in the ledger, so
    play continues normally when the store is degraded.
    """

    def __init__(
        self,
        store: Optional[PersistentStore] = None,
        loader: Optional[WordBankLoader] = None,
        ledger: Optional[ProgressLedger] = None,
        selector: Optional[CycleSelector] = None,
        timer: Optional[AnswerTimer] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store or PersistentStore()
        self.ledger = ledger or ProgressLedger(self.store)
        self.loader = loader or WordBankLoader()
        self.selector = selector or CycleSelector(self.loader, self.store, rng=rng)
        self.timer = timer or AnswerTimer()

        self.current_word: Optional[PreparedWord] = None
        self.awaiting_answer = False
        self._request_id = 0
        self._load_state()

    def _load_state(self) -> None:
        preferences = self.ledger.get_preferences()
        difficulty = preferences["difficulty"]
        category = preferences["category"]
        self.difficulty = difficulty if difficulty in settings.game.difficulties else settings.game.default_difficulty
        self.category = category if category in settings.game.categories else settings.game.default_category

        stats = self.ledger.get_stats()
        self.score = stats.total_score
        self.streak = stats.current_streak
        self.best_streak = stats.best_streak
        self.level = stats.level
        self.total_words = stats.total_words
        self.correct_answers = stats.correct_answers
        logger.debug(f"Game state loaded: score={self.score}, streak={self.streak}, level={self.level}")

    def _validate(self, difficulty: str, category: str) -> None:
        if difficulty not in settings.game.difficulties:
            raise ValueError(f"Unknown difficulty: {difficulty}")
        if category not in settings.game.categories:
            raise ValueError(f"Unknown category: {category}")

    # Word flow

    async def get_next_word(self, difficulty: Optional[str] = None, category: Optional[str] = None) -> NextWord:
        """Serve the next word of the selected pair.

        Returns None when no word is available, or when a newer request or a
        selection change superseded this one while its bank was loading.
        """
        difficulty = difficulty or self.difficulty
        category = category or self.category
        self._validate(difficulty, category)

        self.timer.cancel()
        self._request_id += 1
        request_id = self._request_id

        await self.loader.load(difficulty, category)
        if request_id != self._request_id:
            logger.debug(f"Discarding stale word request for {difficulty}/{category}")
            return None

        result = await self.selector.next(difficulty, category)
        if isinstance(result, EndOfCategory):
            logger.info(result.message)
            self.current_word = None
            self.awaiting_answer = False
            self.ledger.mark_category_completed(difficulty, category)
        elif result is None:
            self.current_word = None
            self.awaiting_answer = False
        else:
            self.current_word = result
            self.awaiting_answer = True
            logger.debug(f"Loaded word: {result.term}")
        return result

    def calculate_points(self, difficulty: str, time_left: int) -> int:
        """Points for a correct answer given the streak before it."""
        base_points = settings.game.base_points
        base = base_points.get(difficulty, base_points["easy"])
        streak_bonus = (self.streak // 3) * 2
        time_bonus = 5 if time_left > 20 else 2 if time_left > 10 else 0
        return base + streak_bonus + time_bonus

    def record_answer(self, term: str, correct: bool, time_left: Optional[int] = None) -> AnswerOutcome:
        """Apply one answer to the score, streak, level and word statistics."""
        self.timer.cancel()
        if time_left is None:
            time_left = self.timer.time_left

        difficulty = self.difficulty
        correct_answer = None
        if self.current_word is not None and self.current_word.term == term:
            difficulty = self.current_word.meta.difficulty
            correct_answer = self.current_word.correct_answer
            self.awaiting_answer = False

        points = 0
        leveled_up = False
        if correct:
            points = self.calculate_points(difficulty, time_left)
            self.score += points
            self.streak += 1
            self.correct_answers += 1
            if self.streak % settings.game.level_up_streak == 0:
                self.level += 1
                leveled_up = True
                logger.info(f"Level up! Now level {self.level}")

            self.ledger.apply_score_delta(points)
            self.ledger.set_streak(self.streak)
            self.ledger.set_level(self.level)
            self.ledger.increment_correct_answers()
        else:
            self.streak = 0
            self.ledger.set_streak(self.streak)

        self.best_streak = max(self.best_streak, self.streak)
        self.total_words += 1
        self.ledger.increment_words_attempted()
        self.ledger.record_answer(term, difficulty, correct)

        return AnswerOutcome(
            term=term,
            correct=correct,
            points=points,
            streak=self.streak,
            level=self.level,
            leveled_up=leveled_up,
            correct_answer=correct_answer,
        )

    def submit_answer(self, option: str, time_left: Optional[int] = None) -> Optional[AnswerOutcome]:
        """Check a chosen option against the current word. None if no word awaits an answer."""
        if self.current_word is None or not self.awaiting_answer:
            return None
        correct = option == self.current_word.correct_answer
        return self.record_answer(self.current_word.term, correct, time_left)

    def handle_timeout(self) -> Optional[AnswerOutcome]:
        """Count the current word as missed because time ran out."""
        if self.current_word is None or not self.awaiting_answer:
            return None
        logger.debug(f"Time is up for {self.current_word.term}")
        return self.record_answer(self.current_word.term, False, time_left=0)

    def start_timer(
        self,
        on_tick: Optional[Callable[[int], None]] = None,
        on_timeout: Optional[Callable[[Optional[AnswerOutcome]], None]] = None,
    ) -> None:
        """Start the answer countdown for the current word."""
        def timed_out() -> None:
            outcome = self.handle_timeout()
            if on_timeout:
                on_timeout(outcome)

        self.timer.start(on_tick, timed_out)

    def pause(self) -> None:
        self.timer.cancel()

    # Selection

    def change_difficulty(self, difficulty: str) -> None:
        self._validate(difficulty, self.category)
        if difficulty == self.difficulty:
            return
        self.difficulty = difficulty
        self.ledger.update_preferences(difficulty=difficulty)
        self._restart_selection()

    def change_category(self, category: str) -> None:
        self._validate(self.difficulty, category)
        if category == self.category:
            return
        self.category = category
        self.ledger.update_preferences(category=category)
        self._restart_selection()

    def _restart_selection(self) -> None:
        self.timer.cancel()
        self._request_id += 1
        self.current_word = None
        self.awaiting_answer = False
        self.selector.reset_used_words()
        logger.info(f"Switched to {self.difficulty}/{self.category}")

    def play_again(self) -> None:
        """Reshuffle the current pair and start over."""
        self.reset_cycle(self.difficulty, self.category)
        self.current_word = None
        self.awaiting_answer = False

    def reset_cycle(self, difficulty: str, category: str) -> None:
        self._validate(difficulty, category)
        self.selector.reset_cycle(difficulty, category)

    def reset_progress(self) -> None:
        """Clear all statistics and word cycles. Category completion is kept."""
        self.timer.cancel()
        self.ledger.reset_all()
        self.selector.reset_used_words()
        self.current_word = None
        self.awaiting_answer = False
        self._load_state()
        # A degraded store cannot hold the zero values, so reset memory directly
        self.score = self.streak = self.best_streak = 0
        self.total_words = self.correct_answers = 0
        self.level = 1

    # Statistics

    def get_stats(self) -> GameStats:
        if self.store.available:
            return self.ledger.get_stats()
        return GameStats(
            total_score=self.score,
            current_streak=self.streak,
            best_streak=self.best_streak,
            level=self.level,
            total_words=self.total_words,
            correct_answers=self.correct_answers,
            average_accuracy=round_percent(self.correct_answers, self.total_words),
        )

    async def get_progress(self, difficulty: Optional[str] = None, category: Optional[str] = None) -> Progress:
        """Share of a pair's words answered at least once, and accuracy on them."""
        difficulty = difficulty or self.difficulty
        category = category or self.category
        self._validate(difficulty, category)

        bank = (await self.loader.load(difficulty, category)).bank
        terms = set(bank.terms())
        completed = len(terms.intersection(self.ledger.get_completed_words()))

        correct_attempts = 0
        total_attempts = 0
        for term, entry in self.ledger.get_word_accuracy().items():
            if term in terms:
                correct_attempts += entry.get("correct", 0)
                total_attempts += entry.get("total", 0)

        return Progress(
            total_words=len(bank),
            completed_words=completed,
            remaining_words=len(bank) - completed,
            accuracy=round_percent(correct_attempts, total_attempts),
            progress_percentage=round_percent(completed, len(bank)),
        )

    async def get_word_count(self, difficulty: Optional[str] = None, category: Optional[str] = None) -> int:
        difficulty = difficulty or self.difficulty
        category = category or self.category
        self._validate(difficulty, category)
        return len((await self.loader.load(difficulty, category)).bank)

    def get_completion_stats(self) -> Dict[str, Any]:
        return self.ledger.completion_stats()

    async def preload_all(self, on_progress: Optional[ProgressCallback] = None) -> PreloadReport:
        return await self.loader.preload_all(on_progress)

    # Backup

    def export_data(self) -> Dict[str, Any]:
        return self.store.export_all()

    def import_data(self, data: Dict[str, Any]) -> bool:
        """Restore exported data and reload the session from it."""
        imported = self.store.import_all(data)
        if imported:
            self.selector.cycle_state.clear()
            self._load_state()
        return imported

    def storage_info(self) -> Dict[str, Any]:
        return self.store.size_info()

    async def aclose(self) -> None:
        self.timer.cancel()
        await self.loader.aclose()
