"""Configuration management with YAML and environment variable support"""

import os
from typing import Any, Dict, List, Optional, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class BaseConfigSection(BaseSettings):
    """Base class for all config sections with correct environment variable precedence.

    Environment variables take priority over init kwargs (YAML data), which take
    priority over defaults.
    """

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings source priority: env vars > init kwargs > defaults."""
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


class ServerConfig(BaseConfigSection):
    """Server configuration"""

    host: str = "0.0.0.0"  # nosec B104 - containerized deployment
    port: int = 3000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(env_prefix="APP_SERVER_")


class TimeoutsConfig(BaseConfigSection):
    """Subprocess and HTTP timeouts in seconds"""

    tool_probe: float = 5.0
    format_listing: float = 10.0
    download: float = 300.0
    http: float = 20.0

    model_config = SettingsConfigDict(env_prefix="APP_TIMEOUTS_")


class StorageConfig(BaseConfigSection):
    """Artifact cache directories and retention"""

    downloads_dir: str = "downloads"
    subtitles_dir: str = "subtitles"
    max_files: int = 10
    filename_max_length: int = 50

    model_config = SettingsConfigDict(env_prefix="APP_STORAGE_")

    @field_validator("max_files", "filename_max_length")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v


class RateLimitingConfig(BaseConfigSection):
    """Fixed-window rate limits: points allowed per window (seconds)"""

    download_points: int = 50
    download_window: float = 60.0
    subtitle_points: int = 5
    subtitle_window: float = 1.0
    file_points: int = 5
    file_window: float = 900.0

    model_config = SettingsConfigDict(env_prefix="APP_RATE_LIMITING_")


class YouTubeConfig(BaseConfigSection):
    """YouTube source configuration"""

    api_key: Optional[str] = None
    retries: int = 5
    fragment_retries: int = 5

    model_config = SettingsConfigDict(env_prefix="APP_YOUTUBE_")


class FallbackAPIConfig(BaseConfigSection):
    """Third-party conversion API used for non-YouTube platforms"""

    url: str = "https://all-media-downloader1.p.rapidapi.com/media"
    host: str = "all-media-downloader1.p.rapidapi.com"
    api_key: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="APP_FALLBACK_API_")


class LoggingConfig(BaseConfigSection):
    """Logging configuration"""

    level: str = "INFO"
    format: str = "json"

    model_config = SettingsConfigDict(env_prefix="APP_LOGGING_")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("json", "console"):
            raise ValueError("format must be 'json' or 'console'")
        return v


class Config(BaseSettings):
    """Main application configuration"""

    server: ServerConfig = Field(default_factory=ServerConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    rate_limiting: RateLimitingConfig = Field(default_factory=RateLimitingConfig)
    youtube: YouTubeConfig = Field(default_factory=YouTubeConfig)
    fallback_api: FallbackAPIConfig = Field(default_factory=FallbackAPIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(env_prefix="APP_")


class ConfigService:
    """Service for loading and managing configuration"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.environ.get("APP_CONFIG_PATH", "config.yaml")
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from YAML file with environment variable overrides."""
        config_data: Dict[str, Any] = {}

        if os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f)
                if yaml_data:
                    config_data = yaml_data

        self._config = Config(
            server=ServerConfig(**config_data.get("server", {})),
            timeouts=TimeoutsConfig(**config_data.get("timeouts", {})),
            storage=StorageConfig(**config_data.get("storage", {})),
            rate_limiting=RateLimitingConfig(**config_data.get("rate_limiting", {})),
            youtube=YouTubeConfig(**config_data.get("youtube", {})),
            fallback_api=FallbackAPIConfig(**config_data.get("fallback_api", {})),
            logging=LoggingConfig(**config_data.get("logging", {})),
        )

        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration"""
        if self._config is None:
            raise ValueError("Configuration not loaded. Call load() first.")
        return self._config

    def validate(self) -> bool:
        """Validate cross-section constraints of the loaded configuration"""
        if self._config is None:
            raise ValueError("Configuration not loaded. Call load() first.")

        storage = self._config.storage
        if os.path.abspath(storage.downloads_dir) == os.path.abspath(storage.subtitles_dir):
            raise ValueError("downloads_dir and subtitles_dir must be different directories")

        limits = self._config.rate_limiting
        for name in ("download", "subtitle", "file"):
            if getattr(limits, f"{name}_points") < 1 or getattr(limits, f"{name}_window") <= 0:
                raise ValueError(f"{name} rate limit must allow at least one point per positive window")

        return True
