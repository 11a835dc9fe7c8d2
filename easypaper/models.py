"""Pydantic models, dataclass configs, and exceptions for the analysis pipeline.

This module only defines the *schema* of the data that flows through the
pipeline: validation of LLM output, the per-file batch state, provider
configuration, and runtime settings. Behaviour lives in ``llm.py``,
``batch.py`` and ``renderer.py``.
"""

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Literal, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

PDF_MIME_TYPE = "application/pdf"

# ---------------------------------------------------------------------------
# Structured extraction result
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    """Base for models whose JSON names are camelCase.

    Python attributes stay snake_case; both spellings are accepted on input and
    ``model_dump(by_alias=True)`` reproduces the wire names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must be a non-empty string")
    return value


class BasicInfo(_CamelModel):
    """Bibliographic block. ``keywords`` is a comma-separated list of English terms."""

    title: str
    year: str
    first_author: str
    journal: str
    volume_issue: str
    keywords: str

    @field_validator("*")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        return _require_text(value)


class FigureTableSummary(_CamelModel):
    """One figure or table, e.g. ``number="Fig. 1"``."""

    number: str
    title: str
    content: str

    @field_validator("*")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        return _require_text(value)


class PaperAnalysis(_CamelModel):
    """The canonical structured summary of one paper.

    The narrative fields map one-to-one onto report sections 1-8; sections 9
    and 10 are ``figures_tables`` and ``key_references``. ``is_review`` only
    changes the label of the research-design section.
    """

    basic_info: BasicInfo
    research_question: str
    research_design: str
    methods: str
    analysis_process: str
    results: str
    conclusion: str
    evaluation: str
    limitations: str
    figures_tables: list[FigureTableSummary]
    key_references: list[str]
    is_review: bool

    @field_validator(
        "research_question",
        "research_design",
        "methods",
        "analysis_process",
        "results",
        "conclusion",
        "evaluation",
        "limitations",
    )
    @classmethod
    def _non_empty(cls, value: str) -> str:
        return _require_text(value)

    @field_validator("key_references")
    @classmethod
    def _non_empty_references(cls, value: list[str]) -> list[str]:
        for reference in value:
            _require_text(reference)
        return value


# ---------------------------------------------------------------------------
# Batch state
# ---------------------------------------------------------------------------


class ProcessingStatus(str, Enum):
    IDLE = "IDLE"
    READING = "READING"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class SourceDocument(BaseModel):
    """An uploaded file: name, raw bytes and MIME type."""

    model_config = ConfigDict(frozen=True)

    filename: str
    data: bytes = Field(repr=False)
    mime_type: str = PDF_MIME_TYPE

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == PDF_MIME_TYPE

    @classmethod
    def from_path(cls, path: Path) -> "SourceDocument":
        """Read ``path`` into memory, guessing the MIME type from its name."""
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            data=path.read_bytes(),
            mime_type=mime_type or "application/octet-stream",
        )


class AnalyzedFile(BaseModel):
    """One row of the batch. Instances are immutable snapshots.

    ``result`` is set exactly when ``status`` is COMPLETED and ``error``
    exactly when it is ERROR.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    source: SourceDocument
    status: ProcessingStatus = ProcessingStatus.IDLE
    result: PaperAnalysis | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _validate_status_payload(self) -> "AnalyzedFile":
        completed = self.status is ProcessingStatus.COMPLETED
        if completed != (self.result is not None):
            raise ValueError("result must be present iff status is COMPLETED")
        failed = self.status is ProcessingStatus.ERROR
        if failed != bool(self.error):
            raise ValueError("error must be present iff status is ERROR")
        return self

    @property
    def filename(self) -> str:
        return self.source.filename


# ---------------------------------------------------------------------------
# Batch reporting
# ---------------------------------------------------------------------------


class FailedPaper(BaseModel):
    """Records a single file that could not be analysed during a batch run."""

    file_id: str
    filename: str
    error: str


class BatchReport(BaseModel):
    """Aggregate result of one ``start_batch`` call."""

    processed: int = 0
    skipped: int = 0
    failed: int = 0
    failed_papers: list[FailedPaper] = Field(default_factory=list)


@dataclass(frozen=True)
class ExportArtifact:
    """A rendered export ready to be saved or offered as a download."""

    filename: str
    content: bytes
    media_type: str


# ---------------------------------------------------------------------------
# Provider configuration
# ---------------------------------------------------------------------------


class ProviderKind(str, Enum):
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    QWEN = "qwen"
    DOUBAO = "doubao"


ProviderFamily = Literal["native", "chat"]


@dataclass(frozen=True)
class ModelConfig:
    """Static description of one provider.

    Attributes:
        name:           Display name.
        family:         ``native`` providers receive the raw PDF bytes;
                        ``chat`` providers receive extracted text over an
                        OpenAI-compatible chat-completions endpoint.
        base_url:       API root; requests go to ``{base_url}/...``.
        model_id:       Default model identifier (may be empty when
                        ``needs_endpoint`` is set).
        needs_endpoint: The caller must supply an endpoint id that replaces
                        ``model_id``.
        api_key_env:    Environment variable conventionally holding the key.
    """

    name: str
    family: ProviderFamily
    base_url: str
    model_id: str
    needs_endpoint: bool = False
    api_key_env: str = ""


DEFAULT_MODEL_CONFIGS: Mapping[ProviderKind, ModelConfig] = MappingProxyType(
    {
        ProviderKind.GEMINI: ModelConfig(
            name="Gemini-2.5-Flash",
            family="native",
            base_url="https://generativelanguage.googleapis.com/v1beta",
            model_id="gemini-2.5-flash",
            api_key_env="GEMINI_API_KEY",
        ),
        ProviderKind.DEEPSEEK: ModelConfig(
            name="DeepSeek-V3",
            family="chat",
            base_url="https://api.deepseek.com",
            model_id="deepseek-chat",
            api_key_env="DEEPSEEK_API_KEY",
        ),
        ProviderKind.QWEN: ModelConfig(
            name="Qwen-Plus",
            family="chat",
            base_url="https://dashscope.aliyuncs.com/compatible-mode/v1",
            model_id="qwen-plus",
            api_key_env="DASHSCOPE_API_KEY",
        ),
        ProviderKind.DOUBAO: ModelConfig(
            name="Doubao-Pro",
            family="chat",
            base_url="https://ark.cn-beijing.volces.com/api/v3",
            model_id="",
            needs_endpoint=True,
            api_key_env="ARK_API_KEY",
        ),
    }
)


# ---------------------------------------------------------------------------
# Config (plain dataclass holding runtime settings)
# ---------------------------------------------------------------------------

#: Chat providers get at most this many characters of extracted text.
_DEFAULT_MAX_CHARS = 100_000


@dataclass(frozen=True)
class Config:
    """Runtime settings for one orchestrator.

    Attributes:
        provider:          Which entry of the model-config table to use.
        api_key:           Credential for that provider.  Never logged.
        endpoint_id:       Overrides the provider's default model id; required
                           for providers with ``needs_endpoint``.
        max_chars:         Head cut applied to extracted text before it is
                           embedded in a chat prompt.
        temperature:       Sampling temperature sent to every provider.
        reading_delay_s:   Length of the READING state.  ``0`` skips the pause
                           entirely (tests use this).
        timeout_s:         Request timeout in seconds.  ``None`` disables the
                           local timeout.
        response_language: Language requested for the narrative fields.
                           Keywords are always requested in English.
    """

    provider: ProviderKind = ProviderKind.GEMINI
    api_key: str | None = None
    endpoint_id: str | None = None
    max_chars: int = _DEFAULT_MAX_CHARS
    temperature: float = 0.2
    reading_delay_s: float = 0.5
    timeout_s: float | None = 120.0
    response_language: str = "Chinese (Simplified)"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class AnalysisError(Exception):
    """Base class for every failure the pipeline reports on a file."""


class ConfigurationError(AnalysisError):
    """Missing API key or endpoint id. Raised before any network request."""


class ExtractionError(AnalysisError):
    """The PDF could not be parsed or contains no extractable text."""


class ProviderError(AnalysisError):
    """The provider answered with a non-success status or an empty reply.

    Attributes:
        status:  HTTP status code, or ``None`` for transport failures and
                 empty replies.
        message: Human-readable detail from the provider.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        self.message = message
        if status is not None:
            super().__init__(f"API error {status}: {message}")
        else:
            super().__init__(message)


class ParseError(AnalysisError):
    """The provider reply is not JSON or does not match ``PaperAnalysis``."""
