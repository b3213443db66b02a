"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (TUBEDIGEST__GENERATOR__API_KEY=sk-...)
  2. tubedigest.yaml        (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional. Everything except the generator API key has a
usable default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("tubedigest")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "summaries.db")

# Emoji the generator is prompted to lead insights with, plus the ones seen
# in section headers of real responses. Variation selectors are matched
# separately, so base code points only.
DEFAULT_MARKERS: tuple[str, ...] = (
    "🎯", "🚀", "🧠", "💡", "🎤", "🌟", "🔥", "⚡", "📈", "🌐", "💰", "🤖",
    "🎨", "🎭", "🎪", "📚", "🎬", "🎵", "⚖", "🔮", "🛠", "📊", "🧬", "😴",
    "🏋", "🔬", "🌍", "💼", "🏆", "📌", "🔍", "✅", "📋", "📄",
)


def _find_config_file() -> str | None:
    """Return the path of the first tubedigest.yaml found, or None."""
    candidates = [
        Path("tubedigest.yaml"),
        Path(platformdirs.user_config_dir("tubedigest")) / "tubedigest.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080
    auth_enabled: bool = False
    auth_key: str = ""
    allowed_origin_schemes: list[str] = ["chrome-extension", "moz-extension"]


class GeneratorSettings(BaseModel):
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    timeout_seconds: float = 10.0
    max_transcript_chars: int = 8000
    max_tokens_short: int = 220
    max_tokens_detailed: int = 380
    max_tokens_auto: int = 300


class CacheSettings(BaseModel):
    backend: Literal["memory", "sqlite"] = "memory"
    db_path: str = _DEFAULT_DB_PATH
    max_age_hours: int = 24
    cleanup_interval_hours: int = 6


class ParserSettings(BaseModel):
    markers: tuple[str, ...] = DEFAULT_MARKERS
    default_marker: str = "💡"
    list_strategy: Literal["sections", "blocks"] = "sections"
    min_point_length: int = 10
    fallback_min_length: int = 15
    fallback_max_points: int = 6


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: TUBEDIGEST__SERVER__PORT=9090
        env_prefix="TUBEDIGEST__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    generator: GeneratorSettings = GeneratorSettings()
    cache: CacheSettings = CacheSettings()
    parser: ParserSettings = ParserSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
        )
