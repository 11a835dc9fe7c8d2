"""PDF to plain-text extraction with pypdf.

Every page's text is prefixed with a ``--- Page N ---`` marker so that the
origin of any passage (and the point where a later truncation cut in) can be
traced back to a page.  Nothing is written to disk.
"""

import io
import logging

from pypdf import PdfReader

from easypaper.models import ExtractionError

logger = logging.getLogger(__name__)

PAGE_MARKER = "--- Page {number} ---"


def extract_text(data: bytes, filename: str = "<memory>") -> str:
    """Extract the text of every page of a PDF, in page order.

    Args:
        data:     Raw PDF bytes.
        filename: Used only in log and error messages.

    Returns:
        The concatenated text, one ``--- Page N ---`` block per page.

    Raises:
        ExtractionError: if the bytes are not a readable PDF, or if no page
            yields any text (scanned or image-only documents).
    """
    logger.info("Running pypdf extraction on: %s", filename)
    pages = _read_pages(data, filename)

    if not any(page.strip() for page in pages):
        raise ExtractionError(
            f"Unable to extract text from {filename}: "
            "the file might be scanned images"
        )

    blocks = [
        f"{PAGE_MARKER.format(number=number)}\n{text}\n\n"
        for number, text in enumerate(pages, start=1)
    ]
    text = "".join(blocks)
    logger.info(
        "Extraction complete: %d pages, %s chars", len(pages), f"{len(text):,}"
    )
    return text


def _read_pages(data: bytes, filename: str) -> list[str]:
    try:
        reader = PdfReader(io.BytesIO(data))
        return [page.extract_text() or "" for page in reader.pages]
    except Exception as e:
        raise ExtractionError(
            f"Failed to parse {filename}: please ensure it is a PDF "
            f"with selectable text ({e})"
        ) from e
