"""Command line interface for the Quillshift translator."""

from __future__ import annotations

import argparse
import logging
import pathlib
import re
import sys
from typing import Iterable, Optional

from .configuration import QuillshiftConfig, get_settings
from .errors import (
    BatchTranslationError,
    DocumentLoadError,
    QuillshiftError,
    TranslationProviderConfigurationError,
)
from .policy import RetryPolicy
from .providers import build_provider
from .translator import DocumentTranslator, TranslationSummary, validate_paths


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quillshift",
        description=(
            "Translate Word (.docx) documents while preserving layout and field codes."
        ),
    )
    parser.add_argument(
        "input_file",
        help="Path to the .docx file to translate.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        help="Destination language (default from configuration: English).",
    )
    parser.add_argument(
        "-s",
        "--source-language",
        help="Optional source language hint.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider: gemini, openai or echo.",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Provider-specific model identifier.",
    )
    parser.add_argument(
        "--base-url",
        help="Endpoint for the OpenAI-compatible provider.",
    )
    parser.add_argument(
        "-b",
        "--batch-chars",
        type=int,
        help="Characters accumulated before a new batch starts (default: 3000).",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        help="Attempts per batch before giving up (default: 5).",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    return parser


def configure_logging(*, verbose: bool, provider_debug: bool) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if provider_debug:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="[%(name)s] %(levelname)s %(message)s",
    )
    for noisy in ("httpx", "httpcore", "openai", "google_genai"):
        logging.getLogger(noisy).setLevel(max(level, logging.INFO))


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language descriptor."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    addition = sanitise_language_for_filename(language)
    return input_path.with_name(f"{input_path.stem}_{addition}{input_path.suffix}")


def print_progress(completed: int, total: int, status: str) -> None:
    print(f"[{completed}/{total}] {status}", flush=True)


def execute_translation(
    args: argparse.Namespace,
    settings: QuillshiftConfig,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Execute a translation run and return the exit code, summary, and message."""

    target_language = args.target_language or settings.QUILLSHIFT_TARGET_LANGUAGE
    input_path = pathlib.Path(args.input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(args.output).expanduser().resolve()
        if args.output
        else derive_output_path(input_path, target_language)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=args.force)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except QuillshiftError as exc:
        return 1, None, str(exc)

    output_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        provider = build_provider(
            args.provider or settings.LLM_PROVIDER,
            model=args.model or settings.LLM_MODEL,
            base_url=args.base_url or settings.LLM_API_BASE_URL,
            api_key=settings.LLM_API_KEY,
            debug=args.debug_provider or settings.QUILLSHIFT_PROVIDER_DEBUG,
        )
        translator = DocumentTranslator(
            provider=provider,
            target_language=target_language,
            source_language=args.source_language or settings.QUILLSHIFT_SOURCE_LANGUAGE,
            batch_chars=args.batch_chars or settings.QUILLSHIFT_BATCH_CHARS,
            retry_policy=RetryPolicy(
                max_attempts=args.max_attempts or settings.QUILLSHIFT_MAX_ATTEMPTS
            ),
            batch_pause=settings.QUILLSHIFT_BATCH_PAUSE,
            progress=print_progress,
        )
        summary = translator.run(input_path, output_path)
    except (TranslationProviderConfigurationError, DocumentLoadError) as exc:
        return 1, None, str(exc)
    except BatchTranslationError as exc:
        return 1, None, f"{exc}\nNo output was written."
    except QuillshiftError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    return 0, summary, None


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Input file:      {summary.input_path}")
    print(f"  Output file:     {summary.output_path}")
    print(
        "  Paragraphs:      "
        f"{summary.translated_paragraphs} translated / "
        f"{summary.extracted_paragraphs} translatable / "
        f"{summary.total_paragraphs} total"
    )
    print(
        f"  Batches:         {summary.total_batches} "
        f"({summary.total_retries} retries)"
    )
    print(
        f"  Provider:        {summary.provider_name}"
        + (f" ({summary.model})" if summary.model else "")
    )
    if summary.source_language:
        print(f"  Source language: {summary.source_language}")
    print(f"  Target language: {summary.target_language}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.max_attempts is not None and args.max_attempts < 1:
        parser.error("--max-attempts must be at least 1")
    if args.batch_chars is not None and args.batch_chars < 1:
        parser.error("--batch-chars must be at least 1")

    try:
        settings = get_settings()
    except TranslationProviderConfigurationError as exc:
        print(exc)
        return 1

    configure_logging(
        verbose=args.verbose,
        provider_debug=args.debug_provider or settings.QUILLSHIFT_PROVIDER_DEBUG,
    )

    exit_code, summary, message = execute_translation(args, settings)

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
