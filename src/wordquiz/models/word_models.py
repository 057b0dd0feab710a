"""Data structures for word banks, cycles and game statistics."""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple


@dataclass(frozen=True)
class WordEntry:
    """A vocabulary entry as loaded from a word bank."""
    term: str
    pronunciation: str
    correct_definition: str
    incorrect_definitions: Tuple[str, ...]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordEntry":
        """Build an entry from the word data JSON shape."""
        return cls(
            term=data["word"],
            pronunciation=data["pronunciation"],
            correct_definition=data["correct_definition"],
            incorrect_definitions=tuple(data["incorrect_options"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the word data JSON shape."""
        return {
            "word": self.term,
            "pronunciation": self.pronunciation,
            "correct_definition": self.correct_definition,
            "incorrect_options": list(self.incorrect_definitions),
        }


@dataclass(frozen=True)
class WordBank:
    """All entries for one (difficulty, category) pair."""
    difficulty: str
    category: str
    words: Tuple[WordEntry, ...]

    @property
    def key(self) -> str:
        return cache_key(self.difficulty, self.category)

    def __len__(self) -> int:
        return len(self.words)

    def __getitem__(self, index: int) -> WordEntry:
        return self.words[index]

    def terms(self) -> List[str]:
        return [word.term for word in self.words]


@dataclass
class LoadResult:
    """Outcome of loading one word bank."""
    bank: WordBank
    success: bool  # False when the built-in fallback was substituted
    source: str  # "source", "cache" or "fallback"
    error: Optional[str] = None


@dataclass
class PreloadReport:
    """Summary of a bulk preload."""
    success_count: int
    failed_count: int
    details: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class CycleState:
    """Traversal state of one word bank."""
    queue: List[int]
    visited: Set[str] = field(default_factory=set)

    def to_data(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable mapping."""
        return {"queue": list(self.queue), "visited": sorted(self.visited)}

    @classmethod
    def from_data(cls, data: Any, terms: Sequence[str]) -> Optional["CycleState"]:
        """Rebuild a state from stored data, or None if it does not fit the bank.

        A fitting state splits the bank: queued indices and visited terms are
        disjoint and together cover every entry.
        """
        if not isinstance(data, dict):
            return None
        queue = data.get("queue")
        visited = data.get("visited", [])
        if not isinstance(queue, list) or not isinstance(visited, list):
            return None
        if not all(isinstance(i, int) and not isinstance(i, bool) and 0 <= i < len(terms) for i in queue):
            return None
        if len(set(queue)) != len(queue):
            return None
        if not all(isinstance(term, str) for term in visited):
            return None

        visited_terms = set(visited)
        if len(queue) + len(visited_terms) != len(terms):
            return None
        if not visited_terms.issubset(terms):
            return None
        if any(terms[i] in visited_terms for i in queue):
            return None
        return cls(queue=list(queue), visited=visited_terms)


@dataclass(frozen=True)
class WordMeta:
    """Position of a served word within its cycle."""
    difficulty: str
    category: str
    remaining: int
    total: int
    is_last_word: bool


@dataclass(frozen=True)
class PreparedWord:
    """A word ready to be shown, with shuffled answer options."""
    term: str
    pronunciation: str
    options: Tuple[str, ...]
    correct_answer: str
    meta: WordMeta


@dataclass(frozen=True)
class EndOfCategory:
    """Returned instead of a word once every entry of a bank was served."""
    difficulty: str
    category: str
    total: int
    visited_count: int
    message: str


@dataclass
class GameStats:
    """Snapshot of the scalar counters."""
    total_score: int = 0
    current_streak: int = 0
    best_streak: int = 0
    level: int = 1
    total_words: int = 0
    correct_answers: int = 0
    average_accuracy: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class AnswerOutcome:
    """Result of recording one answer."""
    term: str
    correct: bool
    points: int
    streak: int
    level: int
    leveled_up: bool
    correct_answer: Optional[str] = None


@dataclass
class Progress:
    """Completion figures for one (difficulty, category) pair."""
    total_words: int
    completed_words: int
    remaining_words: int
    accuracy: int
    progress_percentage: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def cache_key(difficulty: str, category: str) -> str:
    """Key shared by the loader cache and the cycle state."""
    return f"{difficulty}_{category}"
