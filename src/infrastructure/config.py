"""
Configuration management for the Crisis Sentiment Intelligence service
Handles environment variables, signal-source selection, and feature flags
"""

from typing import Dict, Any
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

SIGNAL_SOURCE_CHOICES = ("feeds", "synthetic", "none")


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application settings
    APP_NAME: str = Field(default="Crisis Sentiment Intelligence", env="APP_NAME")
    APP_VERSION: str = Field(default="1.0.0", env="APP_VERSION")
    DEBUG: bool = Field(default=False, env="DEBUG")
    ENVIRONMENT: str = Field(default="development", env="ENVIRONMENT")

    # Server settings
    HOST: str = Field(default="0.0.0.0", env="HOST")
    PORT: int = Field(default=8000, env="PORT")
    WORKERS: int = Field(default=1, env="WORKERS")

    # CORS settings
    CORS_ORIGINS: list = Field(default=["*"], env="CORS_ORIGINS")
    CORS_ALLOW_CREDENTIALS: bool = Field(
        default=True, env="CORS_ALLOW_CREDENTIALS")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")
    LOG_FORMAT: str = Field(default="json", env="LOG_FORMAT")  # json or text

    # Monitoring settings
    ENABLE_METRICS: bool = Field(default=True, env="ENABLE_METRICS")
    HEALTH_CHECK_TIMEOUT: float = Field(
        default=5.0, env="HEALTH_CHECK_TIMEOUT")  # seconds

    # External signal sources
    SIGNAL_SOURCE: str = Field(default="feeds", env="SIGNAL_SOURCE")  # feeds, synthetic or none
    SIGNAL_REQUEST_TIMEOUT: float = Field(
        default=15.0, env="SIGNAL_REQUEST_TIMEOUT")  # seconds per attempt
    SIGNAL_RETRY_ATTEMPTS: int = Field(default=2, env="SIGNAL_RETRY_ATTEMPTS")
    SIGNAL_RETRY_WAIT_SECONDS: float = Field(
        default=1.0, env="SIGNAL_RETRY_WAIT_SECONDS")
    RATE_LIMIT_DELAY_SECONDS: float = Field(
        default=1.0, env="RATE_LIMIT_DELAY_SECONDS")
    FEED_CACHE_TTL: int = Field(default=300, env="FEED_CACHE_TTL")  # 5 minutes
    FEED_CACHE_SIZE: int = Field(default=256, env="FEED_CACHE_SIZE")
    SIGNAL_USER_AGENT: str = Field(
        default="crisis-sentiment-intelligence/1.0", env="SIGNAL_USER_AGENT")

    # Agent execution settings
    AGENT_EXECUTION_TIMEOUT: int = Field(
        default=180, env="AGENT_EXECUTION_TIMEOUT")  # 3 minutes
    SWARM_ESTIMATED_DURATION_SECONDS: int = Field(
        default=90, env="SWARM_ESTIMATED_DURATION_SECONDS")
    METRICS_CACHE_TTL: int = Field(default=600, env="METRICS_CACHE_TTL")  # 10 minutes
    METRICS_CACHE_SIZE: int = Field(default=128, env="METRICS_CACHE_SIZE")

    # Crisis verification thresholds
    VERIFICATION_MINIMUM_SOURCES: int = Field(
        default=2, env="VERIFICATION_MINIMUM_SOURCES")
    VERIFICATION_MINIMUM_CONFIDENCE: float = Field(
        default=0.7, env="VERIFICATION_MINIMUM_CONFIDENCE")
    VERIFICATION_WINDOW_DAYS: int = Field(
        default=30, env="VERIFICATION_WINDOW_DAYS")

    # Feature flags
    ENABLE_EXTERNAL_SIGNALS: bool = Field(
        default=True, env="ENABLE_EXTERNAL_SIGNALS")
    ENABLE_SYNTHETIC_FALLBACK: bool = Field(
        default=True, env="ENABLE_SYNTHETIC_FALLBACK")
    ENABLE_CRISIS_VERIFICATION: bool = Field(
        default=True, env="ENABLE_CRISIS_VERIFICATION")

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()


def get_agent_config() -> Dict[str, Any]:
    """Get agent execution configuration"""
    return {
        "execution_timeout": settings.AGENT_EXECUTION_TIMEOUT,
        "estimated_duration": settings.SWARM_ESTIMATED_DURATION_SECONDS,
        "rate_limit_delay": settings.RATE_LIMIT_DELAY_SECONDS,
        "minimum_sources": settings.VERIFICATION_MINIMUM_SOURCES,
        "minimum_confidence": settings.VERIFICATION_MINIMUM_CONFIDENCE,
        "verification_window_days": settings.VERIFICATION_WINDOW_DAYS,
        "metrics_cache_ttl": settings.METRICS_CACHE_TTL,
        "metrics_cache_size": settings.METRICS_CACHE_SIZE,
        "crisis_verification": settings.ENABLE_CRISIS_VERIFICATION,
    }


def get_signal_source_config() -> Dict[str, Any]:
    """Get external signal source configuration"""
    source = settings.SIGNAL_SOURCE.lower()
    if not settings.ENABLE_EXTERNAL_SIGNALS:
        source = "none"
    return {
        "source": source,
        "request_timeout": settings.SIGNAL_REQUEST_TIMEOUT,
        "retry_attempts": settings.SIGNAL_RETRY_ATTEMPTS,
        "retry_wait": settings.SIGNAL_RETRY_WAIT_SECONDS,
        "cache_ttl": settings.FEED_CACHE_TTL,
        "cache_size": settings.FEED_CACHE_SIZE,
        "user_agent": settings.SIGNAL_USER_AGENT,
        "rate_limit_delay": settings.RATE_LIMIT_DELAY_SECONDS,
    }


def get_security_config() -> Dict[str, Any]:
    """Get CORS configuration"""
    return {
        "cors_origins": settings.CORS_ORIGINS,
        "cors_allow_credentials": settings.CORS_ALLOW_CREDENTIALS,
    }


def get_monitoring_config() -> Dict[str, Any]:
    """Get monitoring and observability configuration"""
    return {
        "enable_metrics": settings.ENABLE_METRICS,
        "health_check_timeout": settings.HEALTH_CHECK_TIMEOUT,
        "log_level": settings.LOG_LEVEL,
        "log_format": settings.LOG_FORMAT,
    }


def get_feature_flags() -> Dict[str, bool]:
    """Get all feature flags"""
    return {
        "external_signals": settings.ENABLE_EXTERNAL_SIGNALS,
        "synthetic_fallback": settings.ENABLE_SYNTHETIC_FALLBACK,
        "crisis_verification": settings.ENABLE_CRISIS_VERIFICATION,
        "metrics": settings.ENABLE_METRICS,
    }


def is_production() -> bool:
    """Check if running in production environment"""
    return settings.ENVIRONMENT.lower() == "production"


def is_development() -> bool:
    """Check if running in development environment"""
    return settings.ENVIRONMENT.lower() == "development"


def is_testing() -> bool:
    """Check if running in testing environment"""
    return settings.ENVIRONMENT.lower() in ["test", "testing"]

# Environment-specific configurations


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration based on environment"""
    base_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            },
            "json": {
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                "class": "pythonjsonlogger.jsonlogger.JsonFormatter"
            }
        },
        "handlers": {
            "default": {
                "level": settings.LOG_LEVEL,
                "formatter": "json" if settings.LOG_FORMAT == "json" else "standard",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout"
            }
        },
        "loggers": {
            "": {
                "handlers": ["default"],
                "level": settings.LOG_LEVEL,
                "propagate": False
            },
            # aiohttp access chatter stays out of the service log
            "aiohttp": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False
            }
        }
    }

    # Add file handler for production
    if is_production():
        base_config["handlers"]["file"] = {
            "level": settings.LOG_LEVEL,
            "formatter": "json",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": "logs/app.log",
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5
        }
        base_config["loggers"][""]["handlers"].append("file")

    return base_config


def validate_settings() -> None:
    """Validate critical settings"""
    if settings.SIGNAL_SOURCE.lower() not in SIGNAL_SOURCE_CHOICES:
        raise ValueError(
            f"SIGNAL_SOURCE must be one of {', '.join(SIGNAL_SOURCE_CHOICES)}")

    if settings.SIGNAL_RETRY_ATTEMPTS < 1:
        raise ValueError("SIGNAL_RETRY_ATTEMPTS must be at least 1")

    if not 0.0 <= settings.VERIFICATION_MINIMUM_CONFIDENCE <= 1.0:
        raise ValueError("VERIFICATION_MINIMUM_CONFIDENCE must be between 0 and 1")

    if is_production() and settings.DEBUG:
        raise ValueError("DEBUG must be False in production")


# Export commonly used settings
__all__ = [
    'settings',
    'SIGNAL_SOURCE_CHOICES',
    'get_agent_config',
    'get_signal_source_config',
    'get_security_config',
    'get_monitoring_config',
    'get_feature_flags',
    'get_logging_config',
    'is_production',
    'is_development',
    'is_testing',
    'validate_settings'
]
