"""High-level orchestration for document translation."""

from __future__ import annotations

import logging
import pathlib
import time
from dataclasses import dataclass
from typing import Callable, Dict, Sequence

from .documents import DocxDocumentHandler, detect_handler
from .errors import (
    BatchTranslationError,
    ErrorCategory,
    OverwriteRefusedError,
    QuillshiftError,
    TranslationProviderError,
)
from .policy import RetryPolicy, classify_error
from .providers import TranslationProvider
from .segmenter import DEFAULT_BATCH_CHARS, BatchBuilder
from .structures import Batch, ProgressCallback, TranslationMap, ignore_progress

logger = logging.getLogger(__name__)

DEFAULT_BATCH_PAUSE = 0.8


class BatchDispatcher:
    """Sends batches to the provider one at a time, retrying failures."""

    def __init__(
        self,
        provider: TranslationProvider,
        *,
        target_language: str,
        source_language: str | None = None,
        retry_policy: RetryPolicy | None = None,
        batch_pause: float = DEFAULT_BATCH_PAUSE,
        progress: ProgressCallback = ignore_progress,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.target_language = target_language
        self.source_language = source_language
        self.retry_policy = retry_policy or RetryPolicy()
        self.batch_pause = batch_pause
        self.progress = progress
        self.sleep = sleep
        self.retries = 0

    def dispatch(self, batches: Sequence[Batch]) -> TranslationMap:
        """Translate every batch in order and merge the results."""

        results: TranslationMap = {}
        total = len(batches)
        for index, batch in enumerate(batches):
            percent = round(index / total * 100)
            self.progress(
                index, total, f"Translating batch {index + 1}/{total} ({percent}%)..."
            )
            translated = self._translate_with_retry(batch, completed=index, total=total)
            self._merge(batch, translated, results)
            logger.info(
                "Processed batch %d (%d paragraphs, %d chars).",
                batch.batch_id,
                len(batch.items),
                batch.char_count,
            )
            if index + 1 < total and self.batch_pause > 0:
                self.sleep(self.batch_pause)
        return results

    def _translate_with_retry(
        self,
        batch: Batch,
        *,
        completed: int,
        total: int,
    ) -> Dict[int, str]:
        attempt = 0
        while True:
            attempt += 1
            try:
                return self.provider.translate(
                    batch.items,
                    source_language=self.source_language,
                    target_language=self.target_language,
                )
            except TranslationProviderError as exc:
                if not self.retry_policy.should_retry(attempt):
                    raise BatchTranslationError(
                        f"Failed to translate batch after {attempt} attempts. "
                        f"Error: {exc}",
                        batch_id=batch.batch_id,
                        attempts=attempt,
                    ) from exc

                category = classify_error(exc)
                wait_time = self.retry_policy.delay_for(category, attempt)
                label = "Rate limit" if category is ErrorCategory.RATE_LIMIT else "Connection"
                logger.warning(
                    "Batch %d failed (attempt %d of %d): %s",
                    batch.batch_id,
                    attempt,
                    self.retry_policy.max_attempts,
                    exc,
                )
                self.progress(
                    completed,
                    total,
                    f"Error: {label}. Retrying in {wait_time:g}s...",
                )
                self.retries += 1
                self.sleep(wait_time)

    def _merge(
        self,
        batch: Batch,
        translated: Dict[int, str],
        results: TranslationMap,
    ) -> None:
        expected = set(batch.ids)
        for paragraph_id, text in translated.items():
            if paragraph_id not in expected:
                logger.warning(
                    "Ignoring translation for paragraph %s outside batch %d.",
                    paragraph_id,
                    batch.batch_id,
                )
                continue
            results[paragraph_id] = text
        missing = [pid for pid in batch.ids if pid not in translated]
        if missing:
            logger.warning(
                "Batch %d returned no translation for paragraphs %s; "
                "keeping the original text.",
                batch.batch_id,
                missing,
            )


@dataclass
class TranslationSummary:
    """Report returned after processing a document."""

    input_path: pathlib.Path | None
    output_path: pathlib.Path | None
    provider_name: str
    model: str | None
    target_language: str
    source_language: str | None
    total_paragraphs: int
    extracted_paragraphs: int
    translated_paragraphs: int
    total_batches: int
    total_retries: int
    elapsed_seconds: float


class DocumentTranslator:
    """Coordinates extraction, batching, translation and reinsertion."""

    def __init__(
        self,
        *,
        provider: TranslationProvider,
        target_language: str,
        source_language: str | None = None,
        batch_chars: int = DEFAULT_BATCH_CHARS,
        retry_policy: RetryPolicy | None = None,
        batch_pause: float = DEFAULT_BATCH_PAUSE,
        progress: ProgressCallback = ignore_progress,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.target_language = target_language
        self.source_language = source_language
        self.batch_builder = BatchBuilder(batch_chars)
        self.retry_policy = retry_policy or RetryPolicy()
        self.batch_pause = batch_pause
        self.progress = progress
        self.sleep = sleep

    def run(
        self,
        input_path: pathlib.Path,
        output_path: pathlib.Path,
    ) -> TranslationSummary:
        """Translate a document on disk and write the result."""

        start_time = time.time()
        handler = detect_handler(input_path)
        summary = self._process(handler)
        handler.save(output_path)
        summary.input_path = input_path
        summary.output_path = output_path
        summary.elapsed_seconds = time.time() - start_time
        return summary

    def translate_bytes(self, data: bytes) -> bytes:
        """Translate an in-memory package and return the new package."""

        handler = DocxDocumentHandler.from_bytes(data)
        self._process(handler)
        return handler.to_bytes()

    def _process(self, handler: DocxDocumentHandler) -> TranslationSummary:
        items = handler.extract_items()
        batches = self.batch_builder.build(items, handler.is_heading)
        logger.info(
            "Prepared %d paragraphs in %d batches.", len(items), len(batches)
        )

        dispatcher = BatchDispatcher(
            self.provider,
            target_language=self.target_language,
            source_language=self.source_language,
            retry_policy=self.retry_policy,
            batch_pause=self.batch_pause,
            progress=self.progress,
            sleep=self.sleep,
        )
        translations = dispatcher.dispatch(batches)

        self.progress(len(batches), len(batches), "Reassembling document...")
        translated = handler.apply_translations(translations)

        return TranslationSummary(
            input_path=None,
            output_path=None,
            provider_name=self.provider.name,
            model=self.provider.model,
            target_language=self.target_language,
            source_language=self.source_language,
            total_paragraphs=len(handler.paragraphs),
            extracted_paragraphs=len(items),
            translated_paragraphs=translated,
            total_batches=len(batches),
            total_retries=dispatcher.retries,
            elapsed_seconds=0.0,
        )


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable .docx file."
        )
    if not input_path.is_file():
        raise QuillshiftError("Input path must be a file.")

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )
