"""Configuration settings for the quiz."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
WORDS_DIR = DATA_DIR / "words"

# Fixed game grid
DIFFICULTIES = ["easy", "medium", "hard"]
CATEGORIES = ["general", "academic", "business"]

# Scoring
BASE_POINTS = {"easy": 5, "medium": 10, "hard": 15}
MAX_WORD_WEIGHT = 5  # missed words are weighted at most 5x


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        WORDS_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    words_dir: Path = WORDS_DIR


@dataclass
class StorageSettings:
    """Persistent store settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///wordquiz.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"
    prefix: str = os.getenv("STORAGE_PREFIX", "wordchallenge_")
    persist_cycles: bool = os.getenv("PERSIST_CYCLES", "true").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class SourceSettings:
    """Word bank source settings."""
    base_url: Optional[str] = os.getenv("WORDS_BASE_URL") or None
    timeout: float = float(os.getenv("WORDS_TIMEOUT", "10"))
    max_concurrent_loads: int = int(os.getenv("MAX_CONCURRENT_LOADS", "3"))


@dataclass
class GameSettings:
    """Gameplay settings."""
    difficulties: list[str] = field(default_factory=lambda: list(DIFFICULTIES))
    categories: list[str] = field(default_factory=lambda: list(CATEGORIES))
    default_difficulty: str = os.getenv("DEFAULT_DIFFICULTY", "easy")
    default_category: str = os.getenv("DEFAULT_CATEGORY", "general")
    base_points: dict[str, int] = field(default_factory=lambda: dict(BASE_POINTS))
    timer_duration: int = int(os.getenv("TIMER_DURATION", "30"))
    level_up_streak: int = int(os.getenv("LEVEL_UP_STREAK", "5"))
    max_word_weight: int = MAX_WORD_WEIGHT


@dataclass
class MonitoringSettings:
    """Metrics exporter settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_storage_settings() -> StorageSettings:
    """Get storage settings."""
    return StorageSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_source_settings() -> SourceSettings:
    """Get word source settings."""
    return SourceSettings()


def get_game_settings() -> GameSettings:
    """Get game settings."""
    return GameSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    storage: StorageSettings = field(default_factory=get_storage_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    source: SourceSettings = field(default_factory=get_source_settings)
    game: GameSettings = field(default_factory=get_game_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if not self.storage.prefix:
            raise ValueError("STORAGE_PREFIX must not be empty")

        if self.source.max_concurrent_loads < 1:
            raise ValueError("MAX_CONCURRENT_LOADS must be positive")

        if self.source.timeout <= 0:
            raise ValueError("WORDS_TIMEOUT must be positive")

        if self.game.timer_duration < 1:
            raise ValueError("TIMER_DURATION must be positive")

        if self.game.level_up_streak < 1:
            raise ValueError("LEVEL_UP_STREAK must be positive")

        if self.game.default_difficulty not in self.game.difficulties:
            raise ValueError(f"DEFAULT_DIFFICULTY must be one of {self.game.difficulties}")

        if self.game.default_category not in self.game.categories:
            raise ValueError(f"DEFAULT_CATEGORY must be one of {self.game.categories}")


# Create global settings instance
settings = Settings()
settings.validate()
