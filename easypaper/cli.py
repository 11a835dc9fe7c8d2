"""Command-line interface for the batch paper reader.

Entry point: ``easypaper`` (configured in ``pyproject.toml``).

Usage:
    easypaper PAPER.pdf [PAPER.pdf ...] [options]

Key options:
    --provider, --api-key, --endpoint-id, --format, --output-dir,
    --max-chars, --language, --timeout, --reading-delay,
    --verbose/--no-verbose, --log-file.

API keys fall back to the provider's environment variable (``GEMINI_API_KEY``
or ``API_KEY``, ``DEEPSEEK_API_KEY``, ``DASHSCOPE_API_KEY``, ``ARK_API_KEY``);
the Doubao endpoint id falls back to ``ARK_ENDPOINT_ID``.  A ``.env`` file in
the working directory is loaded first.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from easypaper.batch import BatchOrchestrator
from easypaper.log import setup_logging
from easypaper.models import (
    DEFAULT_MODEL_CONFIGS,
    Config,
    ConfigurationError,
    ExportArtifact,
    ProcessingStatus,
    ProviderKind,
    SourceDocument,
    _DEFAULT_MAX_CHARS,
)

logger = logging.getLogger(__name__)

_FORMATS = ("md", "pdf", "xlsx")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Parse CLI arguments, run one batch, and write the exports."""
    load_dotenv()

    parser = _build_parser()
    args = parser.parse_args()

    provider = ProviderKind(args.provider)
    api_key = resolve_api_key(provider, args.api_key)
    endpoint_id = resolve_endpoint_id(provider, args.endpoint_id)

    setup_logging(
        verbose=args.verbose,
        log_file=Path(args.log_file) if args.log_file else None,
        secrets=[api_key] if api_key else [],
    )

    config = Config(
        provider=provider,
        api_key=api_key,
        endpoint_id=endpoint_id,
        max_chars=args.max_chars,
        reading_delay_s=args.reading_delay,
        timeout_s=args.timeout,
        response_language=args.language,
    )

    documents = _load_documents([Path(p) for p in args.files])
    orchestrator = BatchOrchestrator(config)
    orchestrator.add_files(documents)
    if not orchestrator.files:
        logger.error("No PDF files to analyse")
        sys.exit(1)

    try:
        report = asyncio.run(orchestrator.start_batch())
    except ConfigurationError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    output_dir = Path(args.output_dir)
    _write_exports(orchestrator, output_dir, args.format)

    logger.info(
        "Done: processed: %d, skipped: %d, failed: %d",
        report.processed,
        report.skipped,
        report.failed,
    )
    if report.failed_papers:
        logger.error("Failed papers:")
        for fp in report.failed_papers:
            logger.error("  %s: %s", fp.filename, fp.error)
        sys.exit(1)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def resolve_api_key(provider: ProviderKind, explicit: str | None) -> str | None:
    """``--api-key``, else the provider's environment variable.

    Gemini also accepts the generic ``API_KEY`` variable.
    """
    if explicit:
        return explicit
    model_config = DEFAULT_MODEL_CONFIGS[provider]
    key = os.environ.get(model_config.api_key_env)
    if not key and provider is ProviderKind.GEMINI:
        key = os.environ.get("API_KEY")
    return key or None


def resolve_endpoint_id(provider: ProviderKind, explicit: str | None) -> str | None:
    if explicit:
        return explicit
    if DEFAULT_MODEL_CONFIGS[provider].needs_endpoint:
        return os.environ.get("ARK_ENDPOINT_ID") or None
    return None


# ---------------------------------------------------------------------------
# Intake and output
# ---------------------------------------------------------------------------


def _load_documents(paths: list[Path]) -> list[SourceDocument]:
    documents: list[SourceDocument] = []
    for path in paths:
        if not path.is_file():
            logger.error("File not found: %s", path)
            continue
        documents.append(SourceDocument.from_path(path))
    return documents


def _write_exports(
    orchestrator: BatchOrchestrator, output_dir: Path, formats: list[str]
) -> None:
    """Write per-file md/pdf exports and, if requested, the batch spreadsheet."""
    artifacts: list[ExportArtifact] = []
    for entry in orchestrator.files:
        if entry.status is not ProcessingStatus.COMPLETED:
            continue
        for fmt in formats:
            if fmt == "xlsx":
                continue
            artifact = orchestrator.export_file(entry.id, fmt)
            if artifact is not None:
                artifacts.append(artifact)

    if "xlsx" in formats:
        batch_artifact = orchestrator.export_batch()
        if batch_artifact is not None:
            artifacts.append(batch_artifact)

    if not artifacts:
        return
    output_dir.mkdir(parents=True, exist_ok=True)
    for artifact in artifacts:
        path = output_dir / artifact.filename
        path.write_bytes(artifact.content)
        logger.info("Written: %s", path)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="easypaper",
        description=(
            "Summarise academic paper PDFs into a structured ten-section report "
            "using Gemini or an OpenAI-compatible LLM provider."
        ),
    )

    parser.add_argument(
        "files",
        metavar="PDF",
        nargs="+",
        help="PDF files to analyse (processed one at a time, in order).",
    )
    parser.add_argument(
        "--provider",
        choices=[kind.value for kind in ProviderKind],
        default=ProviderKind.GEMINI.value,
        help="LLM provider (default: gemini).",
    )
    parser.add_argument(
        "--api-key",
        metavar="KEY",
        default=None,
        help="Provider API key (default: the provider's environment variable).",
    )
    parser.add_argument(
        "--endpoint-id",
        metavar="ID",
        default=None,
        help="Model/endpoint id overriding the provider default (required for doubao).",
    )
    parser.add_argument(
        "--format",
        nargs="+",
        choices=_FORMATS,
        default=["md"],
        help="Export formats; xlsx is one spreadsheet for the whole batch (default: md).",
    )
    parser.add_argument(
        "--output-dir",
        metavar="DIR",
        default="easypaper_exports",
        help="Directory for exported files (default: easypaper_exports).",
    )
    parser.add_argument(
        "--max-chars",
        metavar="N",
        type=int,
        default=_DEFAULT_MAX_CHARS,
        help=(
            f"Maximum characters of extracted text sent to chat providers "
            f"(default: {_DEFAULT_MAX_CHARS:,})."
        ),
    )
    parser.add_argument(
        "--language",
        metavar="LANG",
        default="Chinese (Simplified)",
        help="Language for the summary text; keywords stay English (default: Chinese (Simplified)).",
    )
    parser.add_argument(
        "--timeout",
        metavar="S",
        type=float,
        default=120.0,
        help="Request timeout in seconds (default: 120).",
    )
    parser.add_argument(
        "--reading-delay",
        metavar="S",
        type=float,
        default=0.0,
        help="Pause in the READING state before each analysis (default: 0).",
    )
    parser.add_argument(
        "--verbose",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable DEBUG-level logging (default: off).",
    )
    parser.add_argument(
        "--log-file",
        metavar="FILE",
        default=None,
        help="Also write log output to FILE.",
    )

    return parser


if __name__ == "__main__":
    main()
