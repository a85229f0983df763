"""Configuration management with YAML and environment variable support."""

from pathlib import Path
from typing import ClassVar, Literal

import yaml
from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads configuration from YAML file."""

    def get_field_value(self, field, field_name: str):
        # Not used with prepare method
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        yaml_path = Path("config.yaml")
        if not yaml_path.exists():
            return {}

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class ProvidersConfig(BaseModel):
    """Which backend serves each generation concern."""

    scripting: Literal["gemini", "openai", "openrouter"] = "gemini"
    image: Literal["gemini"] = "gemini"
    tts: Literal["gemini", "elevenlabs"] = "gemini"


class ApiKeysConfig(BaseModel):
    """Provider credentials.

    ``gemini`` may hold several equivalent keys separated by commas,
    semicolons or newlines; they are rotated on quota errors.
    """

    gemini: str = ""
    openai: str = ""
    openrouter: str = ""
    elevenlabs: str = ""
    apify: str = ""


class ModelsConfig(BaseModel):
    """AI model identifiers."""

    scripting: str = "gemini-2.5-flash"
    metadata: str = "gemini-2.5-flash"
    image: str = "gemini-2.5-flash-image"
    tts: str = "gemini-2.5-flash-preview-tts"
    elevenlabs_tts: str = "eleven_multilingual_v2"


class PipelineConfig(BaseModel):
    """Pipeline execution parameters."""

    retry_max_attempts: int = 3
    retry_base_delay: float = 2.0
    segment_seconds: int = 5
    default_voice: str = "Kore"
    compress_bitrate: int = 128
    language: str = "pt-BR"


class TranscriptConfig(BaseModel):
    """Transcript scraping parameters."""

    actor_id: str = "starvibe~youtube-video-transcript"
    poll_interval: float = 3.0
    poll_max_attempts: int = 20
    language: str = "pt"


class StorageConfig(BaseModel):
    """Storage and database configuration."""

    database_url: str = "sqlite+aiosqlite:///shortfactory.db"
    tmp_dir: Path = Path("tmp")

    @field_validator("tmp_dir", mode="before")
    @classmethod
    def convert_tmp_dir_to_path(cls, v):
        """Convert string to Path object."""
        if isinstance(v, str):
            return Path(v)
        return v


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: SHORTFACTORY_, delimiter: __)
    2. .env file
    3. YAML file (config.yaml)
    4. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="SHORTFACTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    providers: ProvidersConfig = ProvidersConfig()
    api_keys: ApiKeysConfig = ApiKeysConfig()
    models: ModelsConfig = ModelsConfig()
    pipeline: PipelineConfig = PipelineConfig()
    transcripts: TranscriptConfig = TranscriptConfig()
    storage: StorageConfig = StorageConfig()
    server: ServerConfig = ServerConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration.

        Priority order (highest to lowest):
        1. Init settings (explicit keyword arguments, used by tests)
        2. Environment variables
        3. .env file
        4. YAML file
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )


# Singleton instance
settings = Settings()


def get_settings() -> Settings:
    """Return the live settings object (injected as the config lookup)."""
    return settings
