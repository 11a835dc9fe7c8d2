"""Tests for easypaper/cli.py — argument parsing and high-level CLI behaviour."""

import os
from unittest.mock import AsyncMock, patch

import pytest

from easypaper.cli import _build_parser, main, resolve_api_key, resolve_endpoint_id
from easypaper.models import (
    BatchReport,
    ConfigurationError,
    FailedPaper,
    ProcessingStatus,
    ProviderKind,
)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def test_parser_requires_at_least_one_file():
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_parser_defaults():
    args = _build_parser().parse_args(["paper.pdf"])
    assert args.files == ["paper.pdf"]
    assert args.provider == "gemini"
    assert args.api_key is None
    assert args.endpoint_id is None
    assert args.format == ["md"]
    assert args.output_dir == "easypaper_exports"
    assert args.max_chars == 100_000
    assert args.timeout == 120.0
    assert args.reading_delay == 0.0
    assert args.verbose is False


def test_parser_rejects_unknown_provider():
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["paper.pdf", "--provider", "gpt"])


def test_parser_multiple_formats():
    args = _build_parser().parse_args(["a.pdf", "--format", "md", "pdf", "xlsx"])
    assert args.format == ["md", "pdf", "xlsx"]


# ---------------------------------------------------------------------------
# Credential resolution
# ---------------------------------------------------------------------------


def test_resolve_api_key_prefers_flag():
    with patch.dict(os.environ, {"DEEPSEEK_API_KEY": "env-key"}):
        assert resolve_api_key(ProviderKind.DEEPSEEK, "flag-key") == "flag-key"


def test_resolve_api_key_reads_provider_env():
    with patch.dict(os.environ, {"DASHSCOPE_API_KEY": "qwen-key"}):
        assert resolve_api_key(ProviderKind.QWEN, None) == "qwen-key"


def test_resolve_api_key_gemini_falls_back_to_api_key():
    env = {k: v for k, v in os.environ.items() if k != "GEMINI_API_KEY"}
    env["API_KEY"] = "generic-key"
    with patch.dict(os.environ, env, clear=True):
        assert resolve_api_key(ProviderKind.GEMINI, None) == "generic-key"


def test_resolve_api_key_generic_var_not_used_for_chat_providers():
    env = {k: v for k, v in os.environ.items() if k != "DEEPSEEK_API_KEY"}
    env["API_KEY"] = "generic-key"
    with patch.dict(os.environ, env, clear=True):
        assert resolve_api_key(ProviderKind.DEEPSEEK, None) is None


def test_resolve_endpoint_id_only_for_doubao():
    with patch.dict(os.environ, {"ARK_ENDPOINT_ID": "ep-1"}):
        assert resolve_endpoint_id(ProviderKind.DOUBAO, None) == "ep-1"
        assert resolve_endpoint_id(ProviderKind.QWEN, None) is None


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


def _completed_batch(analysis):
    """Patch start_batch so every pending file completes with ``analysis``."""

    async def fake_start(self):
        for entry in self.files:
            self._transition(
                entry.id, status=ProcessingStatus.COMPLETED, result=analysis
            )
        return BatchReport(processed=len(self.files))

    return patch("easypaper.cli.BatchOrchestrator.start_batch", fake_start)


def test_main_writes_requested_exports(tmp_path, text_pdf_bytes, analysis):
    pdf = tmp_path / "paper.pdf"
    pdf.write_bytes(text_pdf_bytes)
    out = tmp_path / "out"
    argv = [
        "easypaper",
        str(pdf),
        "--api-key",
        "sk-test",
        "--format",
        "md",
        "pdf",
        "xlsx",
        "--output-dir",
        str(out),
    ]
    with patch("sys.argv", argv), _completed_batch(analysis):
        main()

    assert (out / "paper_summary.md").exists()
    assert (out / "paper_summary.pdf").exists()
    assert (out / "EasyPaper_Batch_Export.xlsx").exists()


def test_main_exits_when_no_pdf_given(tmp_path):
    notes = tmp_path / "notes.txt"
    notes.write_text("hello", encoding="utf-8")
    with patch("sys.argv", ["easypaper", str(notes), "--api-key", "k"]):
        with pytest.raises(SystemExit) as exc_info:
            main()
    assert exc_info.value.code == 1


def test_main_exits_on_configuration_error(tmp_path, text_pdf_bytes):
    pdf = tmp_path / "paper.pdf"
    pdf.write_bytes(text_pdf_bytes)
    with (
        patch("sys.argv", ["easypaper", str(pdf)]),
        patch(
            "easypaper.cli.BatchOrchestrator.start_batch",
            AsyncMock(side_effect=ConfigurationError("Gemini API Key is required.")),
        ),
    ):
        with pytest.raises(SystemExit) as exc_info:
            main()
    assert exc_info.value.code == 1


def test_main_exits_nonzero_when_a_file_failed(tmp_path, text_pdf_bytes):
    pdf = tmp_path / "paper.pdf"
    pdf.write_bytes(text_pdf_bytes)
    report = BatchReport(
        failed=1,
        failed_papers=[FailedPaper(file_id="x", filename="paper.pdf", error="API error 429")],
    )
    with (
        patch("sys.argv", ["easypaper", str(pdf), "--api-key", "k", "--output-dir", str(tmp_path / "o")]),
        patch(
            "easypaper.cli.BatchOrchestrator.start_batch",
            AsyncMock(return_value=report),
        ),
    ):
        with pytest.raises(SystemExit) as exc_info:
            main()
    assert exc_info.value.code == 1
    assert not (tmp_path / "o").exists()


def test_main_never_logs_api_key(tmp_path, text_pdf_bytes, analysis, capsys):
    pdf = tmp_path / "paper.pdf"
    pdf.write_bytes(text_pdf_bytes)
    argv = [
        "easypaper",
        str(pdf),
        "--api-key",
        "sk-very-secret",
        "--output-dir",
        str(tmp_path / "out"),
        "--verbose",
    ]
    with patch("sys.argv", argv), _completed_batch(analysis):
        main()
    assert "sk-very-secret" not in capsys.readouterr().err
