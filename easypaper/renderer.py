"""Export formatters — PaperAnalysis → Markdown, spreadsheet and PDF bytes.

All functions are pure: no file I/O happens here.  The caller (``batch.py`` /
``cli.py``) decides where the returned ``ExportArtifact`` goes.
"""

import io
import logging
import re
from typing import Sequence

import fitz  # PyMuPDF
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from easypaper.models import ExportArtifact, PaperAnalysis

logger = logging.getLogger(__name__)

BATCH_EXPORT_FILENAME = "EasyPaper_Batch_Export.xlsx"

MARKDOWN_MEDIA_TYPE = "text/markdown; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"

#: Report sections in their fixed order; numbers are part of the heading.
SECTION_TITLES: tuple[str, ...] = (
    "1. Research Question & Hypothesis",
    "2. Research Design",
    "3. Methods & Techniques",
    "4. Analysis Process",
    "5. Results",
    "6. Conclusion",
    "7. Evaluation",
    "8. Limitations & Inspiration",
    "9. Figures & Tables",
    "10. Key References",
)

REVIEW_MARKER = "(Review Framework)"

SPREADSHEET_COLUMNS: tuple[str, ...] = (
    "Title",
    "Year",
    "Author",
    "Journal",
    "Keywords",
    "Question",
    "Results",
    "Conclusion",
    "Evaluation",
    "Limitations",
)


def summary_filename(source_filename: str, suffix: str) -> str:
    """``paper.pdf`` → ``paper_summary.md`` (for ``suffix=".md"``)."""
    stem = re.sub(r"\.[^/.]+$", "", source_filename)
    return f"{stem}_summary{suffix}"


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------


def render_markdown(analysis: PaperAnalysis) -> str:
    """Render the ten-section report as a single markdown document."""
    info = analysis.basic_info
    design_title = SECTION_TITLES[1]
    if analysis.is_review:
        design_title = f"{design_title} {REVIEW_MARKER}"

    figures = "\n".join(
        f"- **{f.number} {f.title}**: {f.content}" for f in analysis.figures_tables
    )
    references = "\n".join(f"- {r}" for r in analysis.key_references)

    sections = (
        (SECTION_TITLES[0], analysis.research_question),
        (design_title, analysis.research_design),
        (SECTION_TITLES[2], analysis.methods),
        (SECTION_TITLES[3], analysis.analysis_process),
        (SECTION_TITLES[4], analysis.results),
        (SECTION_TITLES[5], analysis.conclusion),
        (SECTION_TITLES[6], analysis.evaluation),
        (SECTION_TITLES[7], analysis.limitations),
        (SECTION_TITLES[8], figures),
        (SECTION_TITLES[9], references),
    )
    body = "\n\n".join(f"## {title}\n{text}" for title, text in sections)

    return (
        f"# {info.title}\n\n"
        f"**Year**: {info.year} | **First Author**: {info.first_author}\n"
        f"**Journal**: {info.journal} ({info.volume_issue})\n"
        f"**Keywords**: {info.keywords}\n\n"
        f"{body}"
    ).strip()


def export_markdown(analysis: PaperAnalysis, source_filename: str) -> ExportArtifact:
    return ExportArtifact(
        filename=summary_filename(source_filename, ".md"),
        content=render_markdown(analysis).encode("utf-8"),
        media_type=MARKDOWN_MEDIA_TYPE,
    )


# ---------------------------------------------------------------------------
# Spreadsheet
# ---------------------------------------------------------------------------


def _spreadsheet_row(analysis: PaperAnalysis) -> list[str]:
    info = analysis.basic_info
    return [
        info.title,
        info.year,
        info.first_author,
        info.journal,
        info.keywords,
        analysis.research_question,
        analysis.results,
        analysis.conclusion,
        analysis.evaluation,
        analysis.limitations,
    ]


def render_spreadsheet(analyses: Sequence[PaperAnalysis]) -> bytes:
    """One ``Summaries`` sheet: a header row, then one row per analysis.

    Figures/tables and key references are not included.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Summaries"
    ws.append(list(SPREADSHEET_COLUMNS))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for analysis in analyses:
        ws.append(_spreadsheet_row(analysis))
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = Alignment(wrap_text=True, vertical="top")

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_spreadsheet(analyses: Sequence[PaperAnalysis]) -> ExportArtifact:
    logger.info("Exporting %d analysis row(s) to spreadsheet", len(analyses))
    return ExportArtifact(
        filename=BATCH_EXPORT_FILENAME,
        content=render_spreadsheet(analyses),
        media_type=XLSX_MEDIA_TYPE,
    )


# ---------------------------------------------------------------------------
# PDF (best effort)
# ---------------------------------------------------------------------------

PDF_DISCLAIMER = (
    "Note: PDF export of non-Latin characters requires loading custom font files.",
    "Please use Markdown or Excel export for full text support.",
)


def _ascii(text: str) -> str:
    return text.encode("ascii", "replace").decode("ascii")


def render_pdf(analysis: PaperAnalysis) -> bytes:
    """A one-page preview: heading, disclaimer, truncated title and year.

    Only the built-in Helvetica font is available, so every string is reduced
    to ASCII; use the Markdown or spreadsheet export for the full text.
    """
    info = analysis.basic_info
    doc = fitz.open()
    try:
        page = doc.new_page()
        page.insert_text((28, 40), "EasyPaper Summary", fontsize=16)
        page.insert_text((28, 68), PDF_DISCLAIMER[0], fontsize=10)
        page.insert_text((28, 82), PDF_DISCLAIMER[1], fontsize=10)
        page.insert_text(
            (28, 110), _ascii(f"Title: {info.title[:50]}..."), fontsize=10
        )
        page.insert_text((28, 124), _ascii(f"Year: {info.year}"), fontsize=10)
        return doc.tobytes()
    finally:
        doc.close()


def export_pdf(analysis: PaperAnalysis, source_filename: str) -> ExportArtifact:
    return ExportArtifact(
        filename=summary_filename(source_filename, ".pdf"),
        content=render_pdf(analysis),
        media_type=PDF_MEDIA_TYPE,
    )
