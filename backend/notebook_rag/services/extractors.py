from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import PurePath

from ..config import AppConfig
from ..models.notebook import FileType
from .errors import CorruptFile, NoExtractableText, UnsupportedFormat


@dataclass
class ExtractedText:
    text: str
    unit_count: int


_MIME_TYPES = {
    "application/pdf": FileType.PDF,
    "text/plain": FileType.TEXT,
    "text/markdown": FileType.TEXT,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FileType.RICHTEXT,
    "image/jpeg": FileType.IMAGE,
    "image/png": FileType.IMAGE,
    "image/webp": FileType.IMAGE,
}

_EXTENSIONS = {
    ".pdf": FileType.PDF,
    ".txt": FileType.TEXT,
    ".md": FileType.TEXT,
    ".docx": FileType.RICHTEXT,
    ".jpg": FileType.IMAGE,
    ".jpeg": FileType.IMAGE,
    ".png": FileType.IMAGE,
    ".webp": FileType.IMAGE,
}

IMAGE_MIME_TYPES = {"image/jpeg", "image/png", "image/webp"}

_DEFAULT_LIMITS = {
    FileType.PDF: 5 * 1024 * 1024,
    FileType.RICHTEXT: 10 * 1024 * 1024,
    FileType.IMAGE: 5 * 1024 * 1024,
    FileType.TEXT: 500 * 1024,
}


def detect_file_type(file_name: str | None, mime_type: str | None) -> FileType:
    """Resolve the declared file type from a MIME type, falling back to the extension."""
    if mime_type:
        file_type = _MIME_TYPES.get(mime_type.split(";")[0].strip().lower())
        if file_type is not None:
            return file_type
    if file_name:
        file_type = _EXTENSIONS.get(PurePath(file_name).suffix.lower())
        if file_type is not None:
            return file_type
    raise UnsupportedFormat("Unsupported file type. Upload a PDF, DOCX, TXT, JPEG, PNG or WebP file.")


def size_limits(settings: AppConfig | None) -> dict[FileType, int]:
    if settings is None:
        return dict(_DEFAULT_LIMITS)
    return {
        FileType.PDF: settings.max_pdf_bytes,
        FileType.RICHTEXT: settings.max_docx_bytes,
        FileType.IMAGE: settings.max_image_bytes,
        FileType.TEXT: settings.max_text_bytes,
    }


def extract(
    data: bytes,
    file_type: FileType,
    mime_type: str | None = None,
    settings: AppConfig | None = None,
) -> ExtractedText:
    """
    Extract raw text from an uploaded file.

    The per-type size ceiling is checked first, then the file's signature, and
    only then is the format library handed the bytes.
    """
    limit = size_limits(settings)[file_type]
    if len(data) > limit:
        raise UnsupportedFormat(f"{file_type.value.upper()} file exceeds the {_format_size(limit)} limit")
    if not data:
        raise NoExtractableText("The uploaded file is empty")

    if file_type is FileType.PDF:
        return _extract_pdf(data)
    if file_type is FileType.RICHTEXT:
        return _extract_docx(data)
    if file_type is FileType.IMAGE:
        return _extract_image(data, mime_type)
    if file_type is FileType.TEXT:
        return _extract_text(data)
    raise UnsupportedFormat(f"Unsupported file type: {file_type}")


def _extract_pdf(data: bytes) -> ExtractedText:
    """Load PDF text using pypdf."""
    if not data.startswith(b"%PDF-"):
        raise CorruptFile("Invalid PDF file")
    try:
        from pypdf import PdfReader
        from pypdf.errors import PdfReadError
    except ImportError:
        raise UnsupportedFormat("pypdf is required for PDF support")

    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError, KeyError) as e:
        raise CorruptFile(f"Failed to read PDF: {e}") from e

    text = "\n\n".join(pages)
    if not text.strip():
        raise NoExtractableText(
            "No text layer found. Scanned PDFs are not supported. Please upload a PDF with selectable text."
        )
    return ExtractedText(text=text, unit_count=len(pages))


def _extract_docx(data: bytes) -> ExtractedText:
    """Load DOCX text using python-docx."""
    # DOCX is a zip archive
    if not data.startswith(b"PK\x03\x04"):
        raise CorruptFile("Invalid DOCX file")
    try:
        from docx import Document
    except ImportError:
        raise UnsupportedFormat("python-docx is required for DOCX support")

    try:
        doc = Document(io.BytesIO(data))
    except Exception as e:
        raise CorruptFile(f"Failed to read DOCX: {e}") from e

    text_parts = [paragraph.text for paragraph in doc.paragraphs if paragraph.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                text_parts.append(" | ".join(cells))

    text = "\n\n".join(text_parts).strip()
    if not text:
        raise NoExtractableText("DOCX file contains no extractable text")
    return ExtractedText(text=text, unit_count=1)


def detect_image_type(data: bytes) -> str | None:
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:4] == b"\x89PNG":
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def _extract_image(data: bytes, mime_type: str | None) -> ExtractedText:
    """Run OCR over an image with pytesseract."""
    detected = detect_image_type(data)
    if detected is None or (mime_type is not None and mime_type not in IMAGE_MIME_TYPES):
        raise UnsupportedFormat("Unsupported image format. Use JPEG, PNG, or WebP.")
    try:
        import pytesseract
        from PIL import Image, UnidentifiedImageError
    except ImportError:
        raise UnsupportedFormat("pytesseract and Pillow are required for image support")

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except Image.DecompressionBombError as e:
        raise UnsupportedFormat("Image dimensions are too large to process") from e
    except (UnidentifiedImageError, OSError) as e:
        raise CorruptFile(f"Failed to read image: {e}") from e

    try:
        text = pytesseract.image_to_string(image).strip()
    except pytesseract.TesseractNotFoundError as e:
        raise UnsupportedFormat("Image text recognition is not available on this server") from e
    except pytesseract.TesseractError as e:
        raise CorruptFile(f"Failed to read text from image: {e}") from e
    if not text:
        raise NoExtractableText("No text could be extracted from the image")
    return ExtractedText(text=text, unit_count=1)


def _extract_text(data: bytes) -> ExtractedText:
    """Decode a plain text or markdown file."""
    if b"\x00" in data:
        raise UnsupportedFormat("Text file appears to be binary")
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise CorruptFile("Text file is not valid UTF-8") from e
    if not text.strip():
        raise NoExtractableText("Text file is empty")
    return ExtractedText(text=text, unit_count=1)


def _format_size(limit: int) -> str:
    if limit >= 1024 * 1024:
        return f"{limit // (1024 * 1024)}MB"
    return f"{limit // 1024}KB"
