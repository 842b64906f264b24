"""Layered configuration loader for Quillshift."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import TranslationProviderConfigurationError

APP_NAME = "quillshift"


class QuillshiftConfig(BaseModel):
    """Schema describing all supported configuration options."""

    LLM_PROVIDER: Literal["gemini", "openai", "echo"] = Field(
        default="gemini",
        description="Translation backend selection.",
    )
    LLM_API_BASE_URL: str | None = Field(
        default=None,
        description="Endpoint of an OpenAI-compatible chat-completions API.",
    )
    LLM_MODEL: str | None = Field(default=None)
    LLM_API_KEY: str | None = Field(default=None, repr=False)
    QUILLSHIFT_TARGET_LANGUAGE: str = Field(default="English")
    QUILLSHIFT_SOURCE_LANGUAGE: str | None = Field(default=None)
    QUILLSHIFT_MAX_ATTEMPTS: int = Field(default=5, ge=1)
    QUILLSHIFT_BATCH_CHARS: int = Field(default=3000, ge=1)
    QUILLSHIFT_BATCH_PAUSE: float = Field(default=0.8, ge=0)
    QUILLSHIFT_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    @classmethod
    def _normalise_provider(cls, data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("LLM_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("-", "_")
                synonyms = {
                    "google": "gemini",
                    "openai_compatible": "openai",
                    "http": "openai",
                    "mock": "echo",
                }
                data["LLM_PROVIDER"] = synonyms.get(normalized, normalized)
        return data


def _discover_yaml_paths(app_dir: Path) -> list[Path]:
    """Return existing config files, lowest precedence first."""

    candidates = [
        Path.home() / f".{APP_NAME}" / "config.yaml",
        app_dir / "config.yaml",
    ]
    seen: set[Path] = set()
    paths: list[Path] = []
    for candidate in candidates:
        resolved = candidate.resolve()
        if resolved in seen or not candidate.is_file():
            continue
        seen.add(resolved)
        paths.append(candidate)
    return paths


def _load_discovered_yaml(app_dir: Path, allowed: set[str]) -> dict[str, Any]:
    """Merge YAML configuration files in discovery order."""

    result: dict[str, Any] = {}
    for path in _discover_yaml_paths(app_dir):
        try:
            with path.open("r", encoding="utf-8") as handle:
                parsed = yaml.safe_load(handle)
        except (OSError, yaml.YAMLError) as exc:
            raise TranslationProviderConfigurationError(
                f"Configuration files could not be read: {path}: {exc}"
            ) from exc
        if parsed is None:
            continue
        if not isinstance(parsed, Mapping):
            raise TranslationProviderConfigurationError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        result.update({k: v for k, v in parsed.items() if k in allowed})
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    app_dir: Path,
    allowed: set[str],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    def merge_values(values: Mapping[str, str | None]) -> None:
        for key, value in sorted(values.items()):
            if value is None or key not in allowed:
                continue
            target[key] = value

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        merge_values(dotenv_values(dotenv_path))

    merge_values(dict(os.environ))


def _format_validation_errors(entries: Sequence[Mapping[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        location = ".".join(str(part) for part in entry.get("loc", ()) if part != "")
        message = str(entry.get("msg") or "Invalid value")
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


@lru_cache(maxsize=None)
def _load_settings(app_dir: Path) -> QuillshiftConfig:
    allowed = set(QuillshiftConfig.model_fields)
    combined = _load_discovered_yaml(app_dir, allowed)
    _merge_env_sources(combined, app_dir=app_dir, allowed=allowed)
    try:
        return QuillshiftConfig.model_validate(combined)
    except ValidationError as exc:
        raise TranslationProviderConfigurationError(
            _format_validation_errors(exc.errors())
        ) from exc


def get_settings(app_dir: Path | None = None) -> QuillshiftConfig:
    """Return the validated settings, loaded once per directory."""

    return _load_settings((app_dir or Path.cwd()).resolve())


def clear_settings_cache() -> None:
    _load_settings.cache_clear()
