"""Tests for easypaper/models.py — pydantic models, configs, exceptions."""

import pytest
from pydantic import ValidationError

from easypaper.models import (
    DEFAULT_MODEL_CONFIGS,
    AnalyzedFile,
    BasicInfo,
    Config,
    PaperAnalysis,
    ProcessingStatus,
    ProviderError,
    ProviderKind,
    SourceDocument,
)


# ---------------------------------------------------------------------------
# PaperAnalysis
# ---------------------------------------------------------------------------


def test_paper_analysis_accepts_camel_case_wire_names(analysis_dict):
    analysis = PaperAnalysis.model_validate(analysis_dict)
    assert analysis.basic_info.first_author == "Huebotter"
    assert analysis.research_question.startswith("Can SNNs")
    assert analysis.is_review is False


def test_paper_analysis_accepts_snake_case_names(analysis):
    rebuilt = PaperAnalysis(**analysis.model_dump())
    assert rebuilt == analysis


def test_paper_analysis_dump_by_alias_restores_wire_names(analysis, analysis_dict):
    assert analysis.model_dump(by_alias=True) == analysis_dict


def test_paper_analysis_preserves_figure_order(analysis):
    assert [f.number for f in analysis.figures_tables] == ["Fig. 1", "Table 1"]


def test_paper_analysis_missing_field_is_invalid(analysis_dict):
    del analysis_dict["conclusion"]
    with pytest.raises(ValidationError):
        PaperAnalysis.model_validate(analysis_dict)


def test_paper_analysis_blank_narrative_is_invalid(analysis_dict):
    analysis_dict["methods"] = "   "
    with pytest.raises(ValidationError):
        PaperAnalysis.model_validate(analysis_dict)


def test_basic_info_blank_title_is_invalid(analysis_dict):
    info = dict(analysis_dict["basicInfo"], title="")
    with pytest.raises(ValidationError):
        BasicInfo.model_validate(info)


def test_figure_table_blank_entry_is_invalid(analysis_dict):
    analysis_dict["figuresTables"] = [{"number": "", "title": " ", "content": ""}]
    with pytest.raises(ValidationError) as exc_info:
        PaperAnalysis.model_validate(analysis_dict)
    assert exc_info.value.error_count() == 3


def test_blank_key_reference_is_invalid(analysis_dict):
    analysis_dict["keyReferences"] = ["Bellec et al., 2020", ""]
    with pytest.raises(ValidationError, match="non-empty"):
        PaperAnalysis.model_validate(analysis_dict)


def test_empty_lists_are_still_valid(analysis_dict):
    analysis_dict["figuresTables"] = []
    analysis_dict["keyReferences"] = []
    analysis = PaperAnalysis.model_validate(analysis_dict)
    assert analysis.figures_tables == [] and analysis.key_references == []


# ---------------------------------------------------------------------------
# AnalyzedFile
# ---------------------------------------------------------------------------


def _source() -> SourceDocument:
    return SourceDocument(filename="a.pdf", data=b"%PDF-1.4")


def test_analyzed_file_defaults_to_idle():
    entry = AnalyzedFile(id="x", source=_source())
    assert entry.status is ProcessingStatus.IDLE
    assert entry.result is None
    assert entry.error is None


def test_analyzed_file_completed_requires_result():
    with pytest.raises(ValidationError):
        AnalyzedFile(id="x", source=_source(), status=ProcessingStatus.COMPLETED)


def test_analyzed_file_error_requires_message():
    with pytest.raises(ValidationError):
        AnalyzedFile(id="x", source=_source(), status=ProcessingStatus.ERROR)


def test_analyzed_file_result_only_when_completed(analysis):
    with pytest.raises(ValidationError):
        AnalyzedFile(id="x", source=_source(), result=analysis)


def test_analyzed_file_is_frozen():
    entry = AnalyzedFile(id="x", source=_source())
    with pytest.raises(ValidationError):
        entry.status = ProcessingStatus.READING


# ---------------------------------------------------------------------------
# SourceDocument
# ---------------------------------------------------------------------------


def test_source_document_from_path_detects_pdf(tmp_path):
    path = tmp_path / "paper.pdf"
    path.write_bytes(b"%PDF-1.4")
    doc = SourceDocument.from_path(path)
    assert doc.filename == "paper.pdf"
    assert doc.is_pdf
    assert doc.data == b"%PDF-1.4"


def test_source_document_from_path_non_pdf(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("hello", encoding="utf-8")
    assert not SourceDocument.from_path(path).is_pdf


# ---------------------------------------------------------------------------
# Provider table and Config
# ---------------------------------------------------------------------------


def test_model_configs_cover_every_provider():
    assert set(DEFAULT_MODEL_CONFIGS) == set(ProviderKind)


def test_model_configs_are_read_only():
    with pytest.raises(TypeError):
        DEFAULT_MODEL_CONFIGS[ProviderKind.QWEN] = DEFAULT_MODEL_CONFIGS[
            ProviderKind.DEEPSEEK
        ]


def test_only_gemini_is_native():
    native = {k for k, v in DEFAULT_MODEL_CONFIGS.items() if v.family == "native"}
    assert native == {ProviderKind.GEMINI}


def test_doubao_needs_endpoint():
    doubao = DEFAULT_MODEL_CONFIGS[ProviderKind.DOUBAO]
    assert doubao.needs_endpoint
    assert doubao.model_id == ""


def test_config_defaults():
    config = Config()
    assert config.max_chars == 100_000
    assert config.temperature == 0.2
    assert config.provider is ProviderKind.GEMINI


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


def test_provider_error_message_includes_status():
    exc = ProviderError("Rate limit reached", status=429)
    assert exc.status == 429
    assert "429" in str(exc)
    assert "Rate limit reached" in str(exc)


def test_provider_error_without_status():
    exc = ProviderError("Empty response from AI provider.")
    assert exc.status is None
    assert str(exc) == "Empty response from AI provider."
