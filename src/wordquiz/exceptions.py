"""Exceptions raised inside the quiz core."""


class WordQuizError(Exception):
    """Base exception for the quiz core."""
    pass


class StorageUnavailableError(WordQuizError):
    """Raised when the storage medium cannot be read or written."""
    pass


class WordSourceError(WordQuizError):
    """Raised when a word bank cannot be fetched from its source."""
    def __init__(self, difficulty: str, category: str, message: str = "Word source failed"):
        self.difficulty = difficulty
        self.category = category
        self.message = message
        super().__init__(f"{difficulty}/{category}: {message}")


class WordBankValidationError(WordQuizError):
    """Raised when fetched word data does not match the expected schema."""
    def __init__(self, message: str, index: int = None):
        self.index = index
        self.message = message
        super().__init__(message if index is None else f"word #{index}: {message}")
