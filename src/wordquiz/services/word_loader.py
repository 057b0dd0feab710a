"""Loading and validating word banks, with a built-in fallback."""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import httpx

from wordquiz.config import settings
from wordquiz.exceptions import WordBankValidationError, WordSourceError
from wordquiz.models.word_models import LoadResult, PreloadReport, WordBank, WordEntry, cache_key
from wordquiz.monitoring import bank_loads, degraded_banks
from wordquiz.services.fallback_words import get_fallback_bank

logger = logging.getLogger(__name__)

MIN_INCORRECT_OPTIONS = 3

ProgressCallback = Callable[[Dict[str, Any]], None]


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def parse_word_bank(difficulty: str, category: str, data: Any) -> WordBank:
    """Validate word data and build a bank. Any bad entry rejects the whole bank."""
    if not isinstance(data, dict) or not isinstance(data.get("words"), list):
        raise WordBankValidationError("expected an object with a 'words' list")

    words = data["words"]
    if not words:
        raise WordBankValidationError("word list is empty")

    entries: List[WordEntry] = []
    for index, word in enumerate(words):
        if not isinstance(word, dict):
            raise WordBankValidationError("entry is not an object", index)
        for field_name in ("word", "pronunciation", "correct_definition"):
            if not _non_empty_string(word.get(field_name)):
                raise WordBankValidationError(f"missing or empty '{field_name}'", index)
        options = word.get("incorrect_options")
        if not isinstance(options, list) or len(options) < MIN_INCORRECT_OPTIONS:
            raise WordBankValidationError(
                f"needs at least {MIN_INCORRECT_OPTIONS} incorrect options", index
            )
        if not all(_non_empty_string(option) for option in options):
            raise WordBankValidationError("incorrect options must be non-empty strings", index)
        entries.append(WordEntry.from_dict(word))

    return WordBank(difficulty=difficulty, category=category, words=tuple(entries))


class WordSource(ABC):
    """Where word data for a (difficulty, category) pair comes from."""

    @abstractmethod
    async def fetch(self, difficulty: str, category: str) -> Any:
        """Return the decoded JSON document, or raise WordSourceError."""

    async def aclose(self) -> None:
        pass


class FileWordSource(WordSource):
    """Reads {words_dir}/{difficulty}/{category}.json."""

    def __init__(self, words_dir: Optional[Path] = None):
        self.words_dir = Path(words_dir or settings.paths.words_dir)

    def path_for(self, difficulty: str, category: str) -> Path:
        return self.words_dir / difficulty / f"{category}.json"

    async def fetch(self, difficulty: str, category: str) -> Any:
        path = self.path_for(difficulty, category)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return json.loads(text)
        except OSError as e:
            raise WordSourceError(difficulty, category, f"cannot read {path}: {e}") from e
        except ValueError as e:
            raise WordSourceError(difficulty, category, f"invalid JSON in {path}: {e}") from e


class HttpWordSource(WordSource):
    """Fetches {base_url}/{difficulty}/{category}.json over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout or settings.source.timeout)

    def url_for(self, difficulty: str, category: str) -> str:
        return f"{self.base_url}/{difficulty}/{category}.json"

    async def fetch(self, difficulty: str, category: str) -> Any:
        url = self.url_for(difficulty, category)
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise WordSourceError(
                difficulty, category, f"failed to load {url}: {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise WordSourceError(difficulty, category, f"failed to load {url}: {e}") from e
        except ValueError as e:
            raise WordSourceError(difficulty, category, f"invalid JSON from {url}: {e}") from e

    async def aclose(self) -> None:
        await self.client.aclose()


def create_word_source() -> WordSource:
    """Source configured by WORDS_BASE_URL, or the local data directory."""
    if settings.source.base_url:
        return HttpWordSource(settings.source.base_url)
    return FileWordSource(settings.paths.words_dir)


class WordBankLoader:
    """Loads each word bank at most once and keeps it for the process lifetime."""

    def __init__(self, source: Optional[WordSource] = None, max_concurrent: Optional[int] = None):
        self.source = source or create_word_source()
        self.max_concurrent = max_concurrent or settings.source.max_concurrent_loads
        self._banks: Dict[str, WordBank] = {}
        self._degraded: Set[str] = set()
        self._pending: Dict[str, asyncio.Task] = {}

    def get_cached(self, difficulty: str, category: str) -> Optional[WordBank]:
        return self._banks.get(cache_key(difficulty, category))

    def is_degraded(self, difficulty: str, category: str) -> bool:
        """True when the pair is served from the built-in fallback."""
        return cache_key(difficulty, category) in self._degraded

    async def load(self, difficulty: str, category: str) -> LoadResult:
        """Return the bank for a pair, fetching it on first use."""
        key = cache_key(difficulty, category)
        if key in self._banks:
            return LoadResult(
                bank=self._banks[key],
                success=key not in self._degraded,
                source="cache",
            )

        # Concurrent requests for one pair share a single fetch; a cancelled
        # caller leaves it running for the others
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(difficulty, category))
            self._pending[key] = task
            task.add_done_callback(lambda _: self._pending.pop(key, None))
        return await asyncio.shield(task)

    async def _fetch(self, difficulty: str, category: str) -> LoadResult:
        key = cache_key(difficulty, category)
        try:
            data = await self.source.fetch(difficulty, category)
            bank = parse_word_bank(difficulty, category, data)
        except (WordSourceError, WordBankValidationError) as e:
            logger.warning(f"Using built-in sample words for {difficulty}/{category}: {e}")
            bank = get_fallback_bank(difficulty, category)
            self._banks[key] = bank
            self._degraded.add(key)
            bank_loads.labels(status="fallback").inc()
            degraded_banks.set(len(self._degraded))
            return LoadResult(bank=bank, success=False, source="fallback", error=str(e))

        self._banks[key] = bank
        self._degraded.discard(key)
        bank_loads.labels(status="success").inc()
        logger.info(f"Loaded {len(bank)} words for {difficulty}/{category}")
        return LoadResult(bank=bank, success=True, source="source")

    async def preload_all(
        self,
        on_progress: Optional[ProgressCallback] = None,
        difficulties: Optional[Iterable[str]] = None,
        categories: Optional[Iterable[str]] = None,
    ) -> PreloadReport:
        """Load every pair with bounded concurrency. Failures never abort the batch."""
        pairs = [
            (difficulty, category)
            for difficulty in (difficulties or settings.game.difficulties)
            for category in (categories or settings.game.categories)
        ]
        semaphore = asyncio.Semaphore(self.max_concurrent)
        details: List[Dict[str, Any]] = []
        completed = 0

        async def run(difficulty: str, category: str) -> None:
            nonlocal completed
            try:
                async with semaphore:
                    result = await self.load(difficulty, category)
                success = result.success
            except Exception:
                logger.exception(f"Unexpected error preloading {difficulty}/{category}")
                success = False

            details.append({"difficulty": difficulty, "category": category, "success": success})
            completed += 1
            if on_progress:
                on_progress({
                    "current": completed,
                    "total": len(pairs),
                    "current_item": {"difficulty": difficulty, "category": category},
                })

        await asyncio.gather(*(run(difficulty, category) for difficulty, category in pairs))

        success_count = sum(1 for detail in details if detail["success"])
        report = PreloadReport(
            success_count=success_count,
            failed_count=len(details) - success_count,
            details=details,
        )
        logger.info(
            f"All word data preloaded. Success: {report.success_count}, Failed: {report.failed_count}"
        )
        return report

    async def aclose(self) -> None:
        await self.source.aclose()
