"""
Text extraction for uploaded resumes.

Only PDF and DOCX uploads are accepted. The extracted text is what the prompt
builders receive as resume content.
"""

import io
import logging
from typing import Optional

import PyPDF2
from docx import Document

from app.core.exceptions import InputValidationError

logger = logging.getLogger(__name__)

MAX_RESUME_SIZE = 3 * 1024 * 1024

PDF_CONTENT_TYPE = "application/pdf"
DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

INVALID_TYPE_MESSAGE = "Invalid file type. Only PDF and DOCX files are allowed."
TOO_LARGE_MESSAGE = "File size exceeds 3MB limit. Please upload a smaller file."
NO_TEXT_MESSAGE = "Could not extract text from file"


def detect_file_type(filename: Optional[str], content_type: Optional[str]) -> Optional[str]:
    """Return ``"pdf"``, ``"docx"`` or None, from the content type or the extension."""
    name = (filename or "").lower()
    if content_type == PDF_CONTENT_TYPE or name.endswith(".pdf"):
        return "pdf"
    if content_type == DOCX_CONTENT_TYPE or name.endswith(".docx"):
        return "docx"
    return None


def extract_text_from_pdf(data: bytes) -> str:
    reader = PyPDF2.PdfReader(io.BytesIO(data))
    text_content = ""
    for page in reader.pages:
        text_content += (page.extract_text() or "") + "\n"
    return text_content.strip()


def extract_docx_text(data: bytes) -> str:
    doc = Document(io.BytesIO(data))
    return "\n".join(paragraph.text for paragraph in doc.paragraphs).strip()


def extract_text(filename: Optional[str], content_type: Optional[str], data: bytes) -> str:
    """
    Extract plain text from an uploaded resume.

    Args:
        filename: Original file name
        content_type: MIME type reported by the client
        data: Raw file bytes

    Returns:
        Extracted text content

    Raises:
        InputValidationError: Unsupported type, file over 3 MB, or no text found
    """
    file_type = detect_file_type(filename, content_type)
    if file_type is None:
        raise InputValidationError(INVALID_TYPE_MESSAGE)
    if len(data) > MAX_RESUME_SIZE:
        raise InputValidationError(TOO_LARGE_MESSAGE)

    try:
        text = extract_text_from_pdf(data) if file_type == "pdf" else extract_docx_text(data)
    except Exception as e:
        logger.error(f"{file_type.upper()} parsing error: {e}")
        raise InputValidationError(NO_TEXT_MESSAGE) from e

    if not text:
        raise InputValidationError(NO_TEXT_MESSAGE)
    return text
