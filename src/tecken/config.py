"""Configuration settings for the practice engine."""
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
CATALOG_DIR = DATA_DIR / "catalog"

# Learning settings
PHRASE_LEVEL_TAGS = ["beginner", "intermediate", "advanced"]


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        CATALOG_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


def get_phrase_level_tags() -> list[str]:
    """Get recognised phrase level tags from environment variable."""
    raw = os.getenv("PHRASE_LEVEL_TAGS")
    if raw is None:
        return list(PHRASE_LEVEL_TAGS)
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    catalog_dir: Path = CATALOG_DIR
    words_file: Path = Path(os.getenv("WORDS_FILE", str(CATALOG_DIR / "ord_database.json")))
    phrases_file: Path = Path(os.getenv("PHRASES_FILE", str(CATALOG_DIR / "fras_database.json")))
    priorities_file: Path = Path(os.getenv("PRIORITIES_FILE", str(CATALOG_DIR / "priorities.json")))
    variants_file: Path = Path(os.getenv("VARIANTS_FILE", str(CATALOG_DIR / "variants.json")))


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///tecken.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


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
class PracticeSettings:
    """Practice session and scoring settings."""
    session_size: int = int(os.getenv("SESSION_SIZE", "10"))
    review_count: int = int(os.getenv("REVIEW_COUNT", "2"))
    max_points: int = int(os.getenv("MAX_POINTS", "5"))
    default_difficulty: int = int(os.getenv("DEFAULT_DIFFICULTY", "50"))
    multiple_choice_min_items: int = int(os.getenv("MULTIPLE_CHOICE_MIN_ITEMS", "10"))
    incorrect_point_delta: int = int(os.getenv("INCORRECT_POINT_DELTA", "1"))


@dataclass
class RankerSettings:
    """Sentence-completion ranking settings."""
    top_candidates: int = int(os.getenv("TOP_CANDIDATES", "3"))
    level_tags: list[str] = field(default_factory=get_phrase_level_tags)


@dataclass
class MonitoringSettings:
    """Metrics exporter settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_practice_settings() -> PracticeSettings:
    """Get practice settings."""
    return PracticeSettings()


def get_ranker_settings() -> RankerSettings:
    """Get ranker settings."""
    return RankerSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    practice: PracticeSettings = field(default_factory=get_practice_settings)
    ranker: RankerSettings = field(default_factory=get_ranker_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.practice.session_size < 1:
            raise ValueError("SESSION_SIZE must be positive")

        if self.practice.review_count < 0 or self.practice.review_count > self.practice.session_size:
            raise ValueError("REVIEW_COUNT must be between 0 and SESSION_SIZE")

        if self.practice.max_points < 1:
            raise ValueError("MAX_POINTS must be positive")

        if self.practice.default_difficulty < 0 or self.practice.default_difficulty > 100:
            raise ValueError("DEFAULT_DIFFICULTY must be between 0 and 100")

        if self.practice.incorrect_point_delta < 0:
            raise ValueError("INCORRECT_POINT_DELTA cannot be negative")

        if self.ranker.top_candidates < 1:
            raise ValueError("TOP_CANDIDATES must be positive")

        if not self.ranker.level_tags:
            raise ValueError("PHRASE_LEVEL_TAGS must name at least one tag")


# Create global settings instance
settings = Settings()
settings.validate()
