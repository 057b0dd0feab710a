"""Progress ledger: scores, streaks, per-word accuracy and category completion."""
import logging
import math
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from wordquiz.config import settings
from wordquiz.models.word_models import GameStats
from wordquiz.monitoring import answers_recorded
from wordquiz.services.storage_service import PersistentStore

logger = logging.getLogger(__name__)


def round_percent(part: int, whole: int) -> int:
    """Percentage rounded half up, 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(math.floor(100 * part / whole + 0.5))


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_tally(entry: Any) -> bool:
    """A {correct, total} mapping of counts with correct <= total."""
    return (
        isinstance(entry, dict)
        and _is_count(entry.get("correct"))
        and _is_count(entry.get("total"))
        and entry["correct"] <= entry["total"]
    )


def _default_progress() -> Dict[str, Any]:
    return {
        "totalScore": 0,
        "currentStreak": 0,
        "bestStreak": 0,
        "level": 1,
        "totalWords": 0,
        "correctAnswers": 0,
        "completedWords": [],
        "missedWords": {},
        "wordAccuracy": {},
        "difficultyStats": {},
        "difficulty": settings.game.default_difficulty,
        "category": settings.game.default_category,
        "initialized": True,
    }


class ProgressLedger:
    """Statistics kept in a PersistentStore.

    Every update is a read-modify-write of a single key, so an interrupted
    turn leaves at most one key behind the others.
    """

    def __init__(self, store: PersistentStore):
        """Initialize the ledger, writing zero values on first use."""
        self.store = store
        if not self.store.get("initialized"):
            self.reset_all()

    # Typed reads; values of the wrong shape are treated as absent

    def _get_int(self, key: str, default: int = 0) -> int:
        value = self.store.get(key, default)
        if isinstance(value, bool) or not isinstance(value, int):
            return default
        return value

    def _get_dict(self, key: str) -> Dict[str, Any]:
        value = self.store.get(key, {})
        return value if isinstance(value, dict) else {}

    def _get_list(self, key: str) -> List[Any]:
        value = self.store.get(key, [])
        return value if isinstance(value, list) else []

    # Aggregate statistics

    def get_stats(self) -> GameStats:
        """Current scalar counters."""
        return GameStats(
            total_score=self._get_int("totalScore"),
            current_streak=self._get_int("currentStreak"),
            best_streak=self._get_int("bestStreak"),
            level=self._get_int("level", 1),
            total_words=self._get_int("totalWords"),
            correct_answers=self._get_int("correctAnswers"),
            average_accuracy=self.average_accuracy(),
        )

    def apply_score_delta(self, points: int) -> None:
        self.store.set("totalScore", self._get_int("totalScore") + points)

    def set_streak(self, streak: int) -> None:
        """Set the current streak and raise the best streak if beaten."""
        self.store.set("currentStreak", streak)
        if streak > self._get_int("bestStreak"):
            self.store.set("bestStreak", streak)

    def set_level(self, level: int) -> None:
        self.store.set("level", level)

    def increment_words_attempted(self) -> None:
        self.store.set("totalWords", self._get_int("totalWords") + 1)

    def increment_correct_answers(self) -> None:
        self.store.set("correctAnswers", self._get_int("correctAnswers") + 1)

    def average_accuracy(self) -> int:
        """Share of attempted words answered correctly, in whole percent."""
        return round_percent(self._get_int("correctAnswers"), self._get_int("totalWords"))

    # Per-word tracking

    def get_completed_words(self) -> List[str]:
        return [word for word in self._get_list("completedWords") if isinstance(word, str)]

    def get_missed_words(self) -> Dict[str, int]:
        return {
            word: count for word, count in self._get_dict("missedWords").items()
            if isinstance(count, int) and not isinstance(count, bool)
        }

    def get_word_accuracy(self) -> Dict[str, Dict[str, int]]:
        return {
            word: {"correct": entry["correct"], "total": entry["total"]}
            for word, entry in self._get_dict("wordAccuracy").items()
            if _is_tally(entry)
        }

    def get_difficulty_stats(self) -> Dict[str, Dict[str, int]]:
        return {
            difficulty: {
                "correct": entry["correct"],
                "total": entry["total"],
                "accuracy": round_percent(entry["correct"], entry["total"]),
            }
            for difficulty, entry in self._get_dict("difficultyStats").items()
            if _is_tally(entry)
        }

    def record_answer(self, term: str, difficulty: str, correct: bool) -> None:
        """Update per-word and per-difficulty tallies for one answer."""
        accuracy = self.get_word_accuracy()
        entry = accuracy.setdefault(term, {"correct": 0, "total": 0})
        entry["total"] = entry.get("total", 0) + 1
        if correct:
            entry["correct"] = entry.get("correct", 0) + 1
        self.store.set("wordAccuracy", accuracy)

        difficulty_stats = self.get_difficulty_stats()
        stats = difficulty_stats.setdefault(difficulty, {"correct": 0, "total": 0, "accuracy": 0})
        stats["total"] = stats.get("total", 0) + 1
        if correct:
            stats["correct"] = stats.get("correct", 0) + 1
        stats["accuracy"] = round_percent(stats["correct"], stats["total"])
        self.store.set("difficultyStats", difficulty_stats)

        completed = self.get_completed_words()
        if term not in completed:
            completed.append(term)
            self.store.set("completedWords", completed)

        missed = self.get_missed_words()
        if correct:
            if term in missed:
                del missed[term]
                self.store.set("missedWords", missed)
        else:
            missed[term] = missed.get(term, 0) + 1
            self.store.set("missedWords", missed)

        answers_recorded.labels(difficulty=difficulty, result="correct" if correct else "incorrect").inc()
        logger.debug(f"Recorded {'correct' if correct else 'incorrect'} answer for {term} ({difficulty})")

    def weight_for(self, term: str) -> int:
        """Selection weight of a word: one more than its miss count, capped."""
        return min(self.get_missed_words().get(term, 0) + 1, settings.game.max_word_weight)

    def word_weights(self) -> Dict[str, int]:
        """Weights of every missed word."""
        return {term: self.weight_for(term) for term in self.get_missed_words()}

    # Preferences

    def get_preferences(self) -> Dict[str, str]:
        return {
            "difficulty": self.store.get("difficulty", settings.game.default_difficulty),
            "category": self.store.get("category", settings.game.default_category),
        }

    def update_preferences(self, **preferences: str) -> None:
        for key, value in preferences.items():
            self.store.set(key, value)

    def reset_all(self) -> None:
        """Rewrite every counter and map to its zero value."""
        for key, value in _default_progress().items():
            self.store.set(key, value)
        logger.info("Progress reset")

    # Category completion

    def get_completed_categories(self, difficulty: str) -> List[str]:
        return [c for c in self._get_list(f"completedCategories_{difficulty}") if isinstance(c, str)]

    def mark_category_completed(self, difficulty: str, category: str) -> bool:
        """Record a completed category. Returns False if it was already recorded."""
        completed = self.get_completed_categories(difficulty)
        if category in completed:
            return False

        completed.append(category)
        self.store.set(f"completedCategories_{difficulty}", completed)
        self.store.set(f"categoryCompleted_{difficulty}_{category}", datetime.now(UTC).isoformat())
        logger.info(f"Marked {difficulty}/{category} as completed")
        return True

    def is_category_completed(self, difficulty: str, category: str) -> bool:
        return category in self.get_completed_categories(difficulty)

    def get_category_completion_date(self, difficulty: str, category: str) -> Optional[str]:
        """ISO-8601 completion timestamp, or None if not completed."""
        return self.store.get(f"categoryCompleted_{difficulty}_{category}", None)

    def completion_stats(self) -> Dict[str, Any]:
        """Completion counts across the difficulty x category grid."""
        difficulties = settings.game.difficulties
        categories = settings.game.categories
        stats: Dict[str, Any] = {
            "total_categories": len(difficulties) * len(categories),
            "completed_categories": 0,
            "by_difficulty": {},
            "completion_percentage": 0,
        }

        for difficulty in difficulties:
            completed = [c for c in self.get_completed_categories(difficulty) if c in categories]
            stats["by_difficulty"][difficulty] = {
                "total": len(categories),
                "completed": len(completed),
                "categories": completed,
                "percentage": round_percent(len(completed), len(categories)),
            }
            stats["completed_categories"] += len(completed)

        stats["completion_percentage"] = round_percent(
            stats["completed_categories"], stats["total_categories"]
        )
        return stats

    def reset_category_completion(self, difficulty: Optional[str] = None) -> None:
        """Forget completed categories for one difficulty, or for all of them."""
        difficulties = [difficulty] if difficulty else settings.game.difficulties
        for diff in difficulties:
            self.store.set(f"completedCategories_{diff}", [])
            for category in settings.game.categories:
                self.store.set(f"categoryCompleted_{diff}_{category}", None)
