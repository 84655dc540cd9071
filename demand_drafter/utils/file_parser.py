"""
File Parser Utility
Upload validation, soft file identity, and PDF text extraction with page markers
"""

import hashlib
import io
import logging
from dataclasses import dataclass
from typing import Optional

import pdfplumber

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'pdf'}


@dataclass
class UploadedFile:
    """One file part from a processing request."""
    file_name: str
    data: bytes
    last_modified: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


def allowed_file(filename: str) -> bool:
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def file_hash(file_name: str, size: int, last_modified: Optional[str] = None) -> str:
    """
    Soft identity from name, size and modified time.

    Two different files can share it; nothing deduplicates on it.
    """
    key = f"{file_name}-{size}-{last_modified or 0}"
    return hashlib.sha1(key.encode('utf-8')).hexdigest()[:16]


def parse_pdf_bytes(data: bytes) -> str:
    """Extract text from PDF bytes with page markers. Returns '' when unreadable."""
    text_parts = []
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for i, page in enumerate(pdf.pages, 1):
                page_text = page.extract_text() or ""
                if page_text.strip():
                    text_parts.append(f"--- PAGE {i} ---\n{page_text}")
    except Exception as e:
        logger.warning(f"Could not read PDF text: {e}")
        return ""
    return "\n\n".join(text_parts)
