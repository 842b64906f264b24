"""Translation provider abstractions."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Sequence

from pydantic import BaseModel, ValidationError

from .errors import (
    ResponseParseError,
    TranslationProviderConfigurationError,
    TranslationProviderError,
)
from .structures import ExtractableItem

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"

SYSTEM_PROMPT = (
    "You are a professional technical translator specializing in software "
    "manuals and engineering documents. You must respond ONLY with the "
    "requested JSON format."
)


class TranslatedSegment(BaseModel):
    id: int
    translated_text: str


class TranslationPayload(BaseModel):
    """Response shape requested from every backend."""

    translations: List[TranslatedSegment]


def build_prompt(
    items: Sequence[ExtractableItem],
    *,
    source_language: str | None,
    target_language: str,
) -> str:
    """Render the batch instructions and data for a chat-style model."""

    source = source_language or "the source language"
    segments = json.dumps([item.as_payload() for item in items], ensure_ascii=False)
    return (
        f"Task: Translate the provided document segments from {source} "
        f"to {target_language}.\n\n"
        "STRICT COMPLIANCE RULES:\n"
        "1. NUMBERING & IDENTIFIERS: Keep all codes, numbering, and IDs exactly "
        'as they are. For example, "2- 101", "3.1.2" or "[ID-404]" must keep '
        "their formatting and spaces.\n"
        "2. PRESERVE TAGS: Leave special symbols such as < > { } [ ] untouched.\n"
        f"3. ALREADY TRANSLATED: If a segment is already entirely in "
        f"{target_language}, return it exactly as provided.\n"
        "4. CONTEXT: Segments are consecutive paragraphs of one document. "
        "Use a consistent, formal register.\n\n"
        'Return a JSON object with a "translations" key containing an array of '
        'objects. Each object must have "id" (integer) and "translated_text" '
        "(string).\n\n"
        f"Data to translate:\n{segments}"
    )


def _strip_code_fence(text: str) -> str:
    """Remove leading/trailing markdown code fences if present."""

    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped

    # Drop opening fence and optional language hint.
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped
    body = stripped[first_newline + 1 :]
    closing_index = body.rfind("```")
    if closing_index != -1:
        body = body[:closing_index]
    return body.strip()


def _json_candidates(text: str) -> Iterator[str]:
    yield text.strip()
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        yield text[start : end + 1]
    yield _strip_code_fence(text)


def parse_translation_response(text: str) -> Dict[int, str]:
    """Turn raw model output into a paragraph id to translation mapping.

    Tries a strict parse first, then the outermost ``{...}`` span, then the
    body of a markdown code fence.
    """

    payload: Any = None
    last_error: json.JSONDecodeError | None = None
    for candidate in _json_candidates(text or ""):
        try:
            payload = json.loads(candidate)
            break
        except json.JSONDecodeError as exc:
            last_error = exc
    else:
        raise ResponseParseError(
            f"The AI returned an invalid JSON response ({last_error})."
        )

    translations = payload.get("translations") if isinstance(payload, dict) else None
    if not isinstance(translations, list):
        raise ResponseParseError(
            'The AI response is missing the "translations" list.'
        )

    mapping: Dict[int, str] = {}
    for entry in translations:
        try:
            segment = TranslatedSegment.model_validate(entry)
        except ValidationError:
            logger.warning("Ignoring malformed translation entry: %r", entry)
            continue
        mapping[segment.id] = segment.translated_text
    return mapping


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    name = "abstract"

    def __init__(self, *, model: str | None = None, debug: bool = False) -> None:
        self.model = model
        self.debug = debug

    @abstractmethod
    def translate(
        self,
        items: Sequence[ExtractableItem],
        *,
        source_language: str | None,
        target_language: str,
    ) -> Dict[int, str]:
        """Translate the provided items and return a mapping by paragraph id."""

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit request/response dumps when provider debugging is enabled."""

        if not self.debug:
            return
        if isinstance(payload, (dict, list)):
            message = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
        else:
            message = str(payload)
        logger.debug("[quillshift][provider-debug] %s:\n%s", label, message)


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    def translate(
        self,
        items: Sequence[ExtractableItem],
        *,
        source_language: str | None,
        target_language: str,
    ) -> Dict[int, str]:
        return {item.id: item.text for item in items}


class GeminiTranslationProvider(TranslationProvider):
    """Gemini backend returning schema-validated JSON."""

    name = "gemini"
    DEFAULT_MODEL = "gemini-2.5-flash"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        debug: bool = False,
    ) -> None:
        super().__init__(model=model or self.DEFAULT_MODEL, debug=debug)
        from google import genai

        try:
            self._client = genai.Client(api_key=api_key or None)
        except ValueError as exc:
            raise TranslationProviderConfigurationError(
                "Gemini configuration missing. Set LLM_API_KEY or GEMINI_API_KEY."
            ) from exc

    def translate(
        self,
        items: Sequence[ExtractableItem],
        *,
        source_language: str | None,
        target_language: str,
    ) -> Dict[int, str]:
        if not items:
            return {}

        from google.genai import errors as genai_errors
        from google.genai import types

        prompt = build_prompt(
            items, source_language=source_language, target_language=target_language
        )
        self._log_debug("provider.request.prompt", prompt)
        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=SYSTEM_PROMPT,
                    response_mime_type="application/json",
                    response_schema=TranslationPayload,
                    temperature=0.1,
                ),
            )
        except genai_errors.APIError as exc:
            raise TranslationProviderError(
                f"API Error: {exc.code} {exc.status or ''} {exc.message or ''}".strip(),
                status_code=exc.code,
            ) from exc
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        text = response.text or ""
        self._log_debug("provider.response.raw", text)
        return parse_translation_response(text)


class OpenAICompatibleTranslationProvider(TranslationProvider):
    """Chat-completions backend reachable at any OpenAI-compatible endpoint."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = 120.0,
        debug: bool = False,
    ) -> None:
        super().__init__(model=model or self.DEFAULT_MODEL, debug=debug)
        from openai import OpenAI

        self.base_url = (base_url or DEFAULT_OPENAI_BASE_URL).rstrip("/")
        # Retries are owned by the dispatcher, not the SDK.
        self._client = OpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY", ""),
            base_url=self.base_url,
            timeout=timeout,
            max_retries=0,
        )

    def translate(
        self,
        items: Sequence[ExtractableItem],
        *,
        source_language: str | None,
        target_language: str,
    ) -> Dict[int, str]:
        if not items:
            return {}

        from openai import APIError, APIStatusError

        prompt = build_prompt(
            items, source_language=source_language, target_language=target_language
        )
        self._log_debug("provider.request.prompt", prompt)
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                temperature=0.1,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except APIStatusError as exc:
            raise TranslationProviderError(
                f"API Error: {exc.status_code} {exc.message}",
                status_code=exc.status_code,
            ) from exc
        except APIError as exc:
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        choices = response.choices or []
        content = choices[0].message.content if choices else None
        self._log_debug("provider.response.raw", content)
        return parse_translation_response(content or "")


def build_provider(
    name: str | None,
    *,
    model: str | None = None,
    base_url: str | None = None,
    api_key: str | None = None,
    debug: bool = False,
) -> TranslationProvider:
    """Factory to create providers by name."""

    normalized = (name or "gemini").strip().lower().replace("_", "-")
    if normalized in {"gemini", "google", "default"}:
        return GeminiTranslationProvider(api_key=api_key, model=model, debug=debug)
    if normalized in {"openai", "openai-compatible", "gpt", "http"}:
        return OpenAICompatibleTranslationProvider(
            base_url=base_url, api_key=api_key, model=model, debug=debug
        )
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider(model=model, debug=debug)
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
