"""
Tests for layered configuration loading.
"""
import pytest

from quillshift.configuration import get_settings
from quillshift.errors import TranslationProviderConfigurationError


def test_defaults_without_sources(tmp_path):
    settings = get_settings(tmp_path)
    assert settings.LLM_PROVIDER == "gemini"
    assert settings.QUILLSHIFT_MAX_ATTEMPTS == 5
    assert settings.QUILLSHIFT_BATCH_CHARS == 3000
    assert settings.QUILLSHIFT_TARGET_LANGUAGE == "English"
    assert settings.LLM_API_KEY is None


def test_layers_override_in_order(tmp_path, monkeypatch):
    (tmp_path / "config.yaml").write_text(
        "LLM_PROVIDER: openai\nLLM_MODEL: from-yaml\nQUILLSHIFT_MAX_ATTEMPTS: 3\n"
        "UNRELATED_KEY: ignored\n",
        encoding="utf-8",
    )
    (tmp_path / ".env").write_text(
        "LLM_MODEL=from-dotenv\nLLM_API_BASE_URL=http://localhost:8080/v1\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LLM_API_BASE_URL", "http://env.example/v1")

    settings = get_settings(tmp_path)

    assert settings.LLM_PROVIDER == "openai"
    assert settings.LLM_MODEL == "from-dotenv"
    assert settings.LLM_API_BASE_URL == "http://env.example/v1"
    assert settings.QUILLSHIFT_MAX_ATTEMPTS == 3


def test_home_config_has_lowest_precedence(tmp_path, monkeypatch):
    home = tmp_path / "home"
    (home / ".quillshift").mkdir(parents=True)
    (home / ".quillshift" / "config.yaml").write_text(
        "QUILLSHIFT_TARGET_LANGUAGE: German\nQUILLSHIFT_BATCH_CHARS: 1500\n",
        encoding="utf-8",
    )
    project = tmp_path / "project"
    project.mkdir()
    (project / "config.yaml").write_text(
        "QUILLSHIFT_TARGET_LANGUAGE: French\n", encoding="utf-8"
    )

    settings = get_settings(project)

    assert settings.QUILLSHIFT_TARGET_LANGUAGE == "French"
    assert settings.QUILLSHIFT_BATCH_CHARS == 1500


@pytest.mark.parametrize(
    "raw,expected",
    [("Google", "gemini"), ("openai-compatible", "openai"), ("mock", "echo")],
)
def test_provider_synonyms(tmp_path, monkeypatch, raw, expected):
    monkeypatch.setenv("LLM_PROVIDER", raw)
    assert get_settings(tmp_path).LLM_PROVIDER == expected


def test_invalid_values_are_reported(tmp_path, monkeypatch):
    monkeypatch.setenv("QUILLSHIFT_MAX_ATTEMPTS", "zero")
    with pytest.raises(TranslationProviderConfigurationError, match="QUILLSHIFT_MAX_ATTEMPTS"):
        get_settings(tmp_path)


def test_yaml_root_must_be_a_mapping(tmp_path):
    (tmp_path / "config.yaml").write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(TranslationProviderConfigurationError, match="mapping"):
        get_settings(tmp_path)
