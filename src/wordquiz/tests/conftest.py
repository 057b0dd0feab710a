"""Test configuration."""
import asyncio
import json
import os
import random
from pathlib import Path
from typing import Any, Dict, Optional

import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from wordquiz.exceptions import WordSourceError
from wordquiz.services.progress_service import ProgressLedger
from wordquiz.services.storage_service import PersistentStore
from wordquiz.services.word_loader import WordBankLoader, WordSource

fake = Faker()


def make_word(term: str) -> Dict[str, Any]:
    """One entry in the word data JSON shape."""
    return {
        "word": term,
        "pronunciation": f"/{term.lower()}/",
        "correct_definition": f"{fake.sentence()} ({term})",
        "incorrect_options": [fake.sentence() for _ in range(3)],
    }


def make_word_data(count: int, difficulty: str = "easy", category: str = "general") -> Dict[str, Any]:
    """A word bank document with count distinct terms."""
    return {
        "category": category,
        "difficulty": difficulty,
        "words": [make_word(f"{fake.word().capitalize()}{i}") for i in range(count)],
    }


class StubSource(WordSource):
    """In-memory word source that records fetches."""

    def __init__(self, delay: float = 0.0):
        self.data: Dict[str, Any] = {}
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, difficulty: str, category: str, data: Any) -> None:
        self.data[f"{difficulty}/{category}"] = data

    async def fetch(self, difficulty: str, category: str) -> Any:
        self.calls.append((difficulty, category))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            key = f"{difficulty}/{category}"
            if key not in self.data:
                raise WordSourceError(difficulty, category, "not found")
            data = self.data[key]
            if isinstance(data, Exception):
                raise data
            return data
        finally:
            self.in_flight -= 1


@pytest.fixture
def store(tmp_path: Path) -> PersistentStore:
    """A store backed by a fresh SQLite file."""
    store = PersistentStore(url=f"sqlite:///{tmp_path / 'quiz.db'}")
    yield store
    store.engine.dispose()


@pytest.fixture
def degraded_store(tmp_path: Path) -> PersistentStore:
    """A store whose database cannot be opened."""
    store = PersistentStore(url=f"sqlite:///{tmp_path / 'missing' / 'quiz.db'}")
    yield store
    store.engine.dispose()


@pytest.fixture
def ledger(store: PersistentStore) -> ProgressLedger:
    return ProgressLedger(store)


@pytest.fixture
def source() -> StubSource:
    return StubSource()


@pytest.fixture
def loader(source: StubSource) -> WordBankLoader:
    return WordBankLoader(source=source)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def words_dir(tmp_path: Path) -> Path:
    """Directory laid out as {difficulty}/{category}.json."""
    path = tmp_path / "words"
    path.mkdir()
    return path


@pytest.fixture
def write_bank(words_dir: Path):
    """Write a word bank document for a pair."""
    def write(difficulty: str, category: str, data: Any) -> Path:
        path = words_dir / difficulty / f"{category}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        text = data if isinstance(data, str) else json.dumps(data)
        path.write_text(text, encoding="utf-8")
        return path

    return write


@pytest.fixture
def word_data():
    """Factory for word bank documents."""
    return make_word_data
