"""
Pytest configuration and shared fixtures.

Providers here never touch the network; sleeps are recorded instead of
performed.
"""

import pytest

from quillshift.configuration import clear_settings_cache
from quillshift.errors import TranslationProviderError
from quillshift.providers import TranslationProvider


class ScriptedProvider(TranslationProvider):
    """Fails with the queued errors first, then uppercases every item."""

    name = "scripted"

    def __init__(self, failures=()):
        super().__init__(model="scripted-1")
        self.failures = list(failures)
        self.calls = []

    def translate(self, items, *, source_language, target_language):
        self.calls.append([item.id for item in items])
        if self.failures:
            raise self.failures.pop(0)
        return {item.id: item.text.upper() for item in items}


class SleepRecorder:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def scripted_provider():
    def factory(*failures):
        return ScriptedProvider(failures)

    return factory


@pytest.fixture
def rate_limit_error():
    return TranslationProviderError(
        "API Error: 429 RESOURCE_EXHAUSTED", status_code=429
    )


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep user config files and LLM variables out of every test."""

    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in (
        "LLM_PROVIDER",
        "LLM_API_BASE_URL",
        "LLM_MODEL",
        "LLM_API_KEY",
        "QUILLSHIFT_TARGET_LANGUAGE",
        "QUILLSHIFT_SOURCE_LANGUAGE",
        "QUILLSHIFT_MAX_ATTEMPTS",
        "QUILLSHIFT_BATCH_CHARS",
        "QUILLSHIFT_BATCH_PAUSE",
        "QUILLSHIFT_PROVIDER_DEBUG",
    ):
        monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()
