"""
StudyMate - Configuration Management
Supports .env files and runtime configuration for the course catalog, local cache,
recommendations, reminders and logging.
"""

from typing import Dict, Any, List
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


# ============================================
# REMOTE CATALOG CONFIGURATION
# ============================================

class CatalogConfig(BaseSettings):
    """Remote course catalog endpoint."""

    api_url: str = Field(
        default="https://687319aac75558e273535336.mockapi.io/api/courses",
        description="URL returning course records or session rows"
    )
    timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="Request timeout for catalog fetches"
    )

    model_config = {
        "env_prefix": "CATALOG_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# LOCAL CACHE CONFIGURATION
# ============================================

class CacheConfig(BaseSettings):
    """Where the last-known sessions and courses are persisted."""

    directory: str = Field(
        default="./cache",
        description="Directory holding the JSON cache documents"
    )
    sessions_file: str = Field(
        default="sessions.json",
        description="File name of the cached session list"
    )
    courses_file: str = Field(
        default="courses.json",
        description="File name of the cached course list"
    )

    model_config = {
        "env_prefix": "CACHE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# RECOMMENDATION CONFIGURATION
# ============================================

class RecommendationConfig(BaseSettings):
    """Recommendation list settings."""

    top_n: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Number of courses returned by the recommendation engine"
    )
    default_session_minutes: int = Field(
        default=30,
        ge=5,
        le=240,
        description="Assumed session length for courses without any sessions"
    )

    model_config = {
        "env_prefix": "RECOMMEND_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# REMINDER CONFIGURATION
# ============================================

class ReminderConfig(BaseSettings):
    """Study reminder defaults."""

    default_time: str = Field(
        default="09:00",
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="Reminder time (HH:mm) used when none is given"
    )
    title: str = Field(
        default="Study Reminder",
        description="Title of scheduled reminder notifications"
    )

    model_config = {
        "env_prefix": "REMINDER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# LOGGING CONFIGURATION
# ============================================

class LoggingConfig(BaseSettings):
    """Console and log file output."""

    level: str = Field(
        default="INFO",
        description="Minimum level name (DEBUG, INFO, WARNING, ERROR)"
    )
    directory: str = Field(
        default="",
        description="Log file directory; empty means backend/logs"
    )
    max_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Rotate the log file after this many bytes"
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Rotated log files to keep"
    )
    colors: bool = Field(
        default=True,
        description="Colorize console output"
    )

    model_config = {
        "env_prefix": "LOG_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# SERVER CONFIGURATION
# ============================================

class ServerConfig(BaseSettings):
    """HTTP server settings."""

    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Origins allowed to call the API"
    )

    model_config = {
        "env_prefix": "SERVER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# CACHED CONFIGURATION INSTANCES
# ============================================

@lru_cache()
def get_catalog_config() -> CatalogConfig:
    """Get cached catalog configuration instance."""
    return CatalogConfig()


@lru_cache()
def get_cache_config() -> CacheConfig:
    """Get cached local cache configuration instance."""
    return CacheConfig()


@lru_cache()
def get_recommendation_config() -> RecommendationConfig:
    """Get cached recommendation configuration instance."""
    return RecommendationConfig()


@lru_cache()
def get_reminder_config() -> ReminderConfig:
    """Get cached reminder configuration instance."""
    return ReminderConfig()


@lru_cache()
def get_logging_config() -> LoggingConfig:
    """Get cached logging configuration instance."""
    return LoggingConfig()


@lru_cache()
def get_server_config() -> ServerConfig:
    """Get cached server configuration instance."""
    return ServerConfig()


def reload_config():
    """Clear configuration cache and reload from environment."""
    get_catalog_config.cache_clear()
    get_cache_config.cache_clear()
    get_recommendation_config.cache_clear()
    get_reminder_config.cache_clear()
    get_logging_config.cache_clear()
    get_server_config.cache_clear()


# ============================================
# CONFIGURATION SUMMARY
# ============================================

def get_config_summary() -> Dict[str, Any]:
    """
    Get a summary of all configuration values.
    Useful for debugging and settings display.
    """
    catalog = get_catalog_config()
    cache = get_cache_config()
    recommend = get_recommendation_config()
    reminder = get_reminder_config()
    logging_config = get_logging_config()

    return {
        "catalog": {
            "api_url": catalog.api_url,
            "timeout_seconds": catalog.timeout_seconds,
        },
        "cache": {
            "directory": cache.directory,
            "sessions_file": cache.sessions_file,
            "courses_file": cache.courses_file,
        },
        "recommendations": {
            "top_n": recommend.top_n,
            "default_session_minutes": recommend.default_session_minutes,
        },
        "reminders": {
            "default_time": reminder.default_time,
            "title": reminder.title,
        },
        "logging": {
            "level": logging_config.level,
            "directory": logging_config.directory or "backend/logs",
        },
    }
