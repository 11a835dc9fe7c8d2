"""Shared pytest fixtures for the easypaper test suite."""

import copy
import logging

import fitz  # PyMuPDF
import pytest

from easypaper.models import PaperAnalysis, SourceDocument


# ---------------------------------------------------------------------------
# Logger isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_easypaper_logger():
    """Clear the easypaper logger between tests.

    Tests that call ``main()`` trigger ``setup_logging()``, which attaches
    handlers and sets ``propagate=False``.  Without this fixture the state
    leaks into subsequent tests and breaks ``caplog`` capture.
    """
    logger = logging.getLogger("easypaper")
    for h in logger.handlers[:]:
        h.close()
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    yield
    for h in logger.handlers[:]:
        h.close()
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# PDFs (generated with PyMuPDF)
# ---------------------------------------------------------------------------


def make_pdf(pages: list[str]) -> bytes:
    """Build a PDF with one page per entry; an empty string gives a blank page."""
    doc = fitz.open()
    try:
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_text((72, 72), text, fontsize=11)
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def pdf_factory():
    """The ``make_pdf`` builder, for tests that need custom page text."""
    return make_pdf


@pytest.fixture
def text_pdf_bytes() -> bytes:
    return make_pdf(
        [
            "Spiking networks for control",
            "We train with surrogate gradients",
            "Results improve on baselines",
        ]
    )


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    """A PDF whose pages carry no text layer, like a scanned document."""
    return make_pdf(["", ""])


@pytest.fixture
def text_pdf(text_pdf_bytes) -> SourceDocument:
    return SourceDocument(filename="paper.pdf", data=text_pdf_bytes)


# ---------------------------------------------------------------------------
# Mock LLM responses (the JSON object a provider would return)
# ---------------------------------------------------------------------------

MOCK_ANALYSIS_DICT = {
    "basicInfo": {
        "title": "Spiking Neural Networks for Continuous Control",
        "year": "2025",
        "firstAuthor": "Huebotter",
        "journal": "Neural Networks",
        "volumeIssue": "Vol. 12, No. 3",
        "keywords": "spiking neural networks, model-based learning, control",
    },
    "researchQuestion": "Can SNNs learn continuous control end-to-end?",
    "researchDesign": "Model-based RL with a learned world model.",
    "methods": "Surrogate gradients; MuJoCo benchmarks; 5 seeds.",
    "analysisProcess": "Train world model, then policy, then evaluate returns.",
    "results": "Matches ANN baselines on 4 of 5 tasks.",
    "conclusion": "SNNs are viable controllers when trained end-to-end.",
    "evaluation": "Rigorous ablations; clear contribution.",
    "limitations": "Simulation only; no neuromorphic hardware.",
    "figuresTables": [
        {"number": "Fig. 1", "title": "Architecture", "content": "Encoder and policy."},
        {"number": "Table 1", "title": "Returns", "content": "Per-task scores."},
    ],
    "keyReferences": ["Bellec et al., 2020, A solution to the learning dilemma."],
    "isReview": False,
}


@pytest.fixture
def analysis_dict() -> dict:
    """A fresh deep copy of the mock provider payload (safe to mutate)."""
    return copy.deepcopy(MOCK_ANALYSIS_DICT)


@pytest.fixture
def analysis(analysis_dict) -> PaperAnalysis:
    return PaperAnalysis.model_validate(analysis_dict)
