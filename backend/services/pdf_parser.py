import io
import logging

import pdfplumber

from services.errors import ExtractionError

logger = logging.getLogger(__name__)

EXTRACTION_FAILED_MESSAGE = "Failed to parse PDF. Please try pasting the text manually."


def is_pdf_filename(filename: str | None) -> bool:
    return bool(filename) and filename.lower().endswith(".pdf")


def extract_text(pdf_bytes: bytes) -> str:
    """Extract all text from a PDF file, one line break between pages."""
    try:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        logger.warning("PDF extraction failed: %s", e)
        raise ExtractionError(EXTRACTION_FAILED_MESSAGE) from e
    return "\n".join(pages).strip()
