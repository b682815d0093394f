"""
Knowledge feature: text extraction from uploaded course documents.
"""

import logging
import os
import tempfile
from dataclasses import dataclass

from langchain_community.document_loaders import PyPDFLoader

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"pdf", "docx", "txt", "md"}


@dataclass
class PageText:
    page_number: int  # 1-based
    text: str


def file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def _load_pages(path: str, ext: str) -> list[PageText]:
    if ext == "pdf":
        pages = []
        for index, doc in enumerate(PyPDFLoader(path).load()):
            page = doc.metadata.get("page", index)  # 0-indexed from PyPDFLoader
            page_number = page + 1 if isinstance(page, int) else index + 1
            if doc.page_content.strip():
                pages.append(PageText(page_number=page_number, text=doc.page_content))
        return pages

    import docx

    document = docx.Document(path)
    paragraphs = [p.text for p in document.paragraphs if p.text.strip()]
    # python-docx has no page concept; paragraph breaks are kept for the chunker
    return [PageText(page_number=1, text="\n\n".join(paragraphs))] if paragraphs else []


def extract_pages(file_bytes: bytes, filename: str) -> list[PageText]:
    """Extract page-segmented text from PDF, DOCX, TXT or MD bytes.

    PDF and DOCX loaders need a file path, so the bytes go through a temp file.
    Pages with no text are dropped.

    Raises:
        ValidationError: Unsupported extension, undecodable text file, or a
            PDF/DOCX the loader cannot parse.
    """
    ext = file_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"Unsupported file type: .{ext or '?'}",
            detail=f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
        )

    if ext in ("txt", "md"):
        try:
            text = file_bytes.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError("Text file is not valid UTF-8", detail=str(e))
        return [PageText(page_number=1, text=text)] if text.strip() else []

    with tempfile.NamedTemporaryFile(delete=False, suffix=f".{ext}") as temp_file:
        temp_file.write(file_bytes)
        temp_path = temp_file.name

    try:
        pages = _load_pages(temp_path, ext)
    except Exception as e:
        logger.warning(f"⚠️ Could not read {filename}: {e}")
        raise ValidationError(f"Could not read .{ext} file", detail=str(e)) from e
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)

    logger.info(f"📄 Extracted {len(pages)} page(s) from {filename}")
    return pages
