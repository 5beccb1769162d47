"""Locate the user's resume and turn it into plain text.

The text is what the job filter and the question answerer reason over;
the file path is what Easy Apply uploads.
"""
from __future__ import annotations

import re
import shutil
import subprocess
import zipfile
from pathlib import Path
from typing import Callable
from xml.etree import ElementTree

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from autopilot.log import get_logger

log = get_logger(__name__)

SUFFIXES: tuple[str, ...] = (".pdf", ".docx", ".txt")

_W = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"

# Word boundaries that glyph-positioned PDFs tend to lose.
_JOINS = [
    (re.compile(r"([a-z])([A-Z])"), r"\1 \2"),
    (re.compile(r"([a-zA-Z])(\d)"), r"\1 \2"),
    (re.compile(r"(\d)([a-zA-Z])"), r"\1 \2"),
    (re.compile(r"([.!?,;:])([A-Za-z])"), r"\1 \2"),
]


def find_resume(directory: Path) -> Path | None:
    """First resume file in ``directory``, PDFs before DOCX before TXT."""
    if not directory.is_dir():
        return None
    candidates = [p for p in sorted(directory.iterdir()) if p.is_file()]
    for suffix in SUFFIXES:
        for candidate in candidates:
            if candidate.suffix.lower() == suffix:
                return candidate
    return None


def _fix_spacing(text: str) -> str:
    """Split run-together words when a page came back with almost no spaces."""
    if len(text) < 50 or text.count(" ") > 0.08 * len(text):
        return text
    for pattern, replacement in _JOINS:
        text = pattern.sub(replacement, text)
    return text


def _pdftotext(path: Path) -> str:
    if not shutil.which("pdftotext"):
        return ""
    proc = subprocess.run(
        ["pdftotext", "-layout", str(path), "-"], capture_output=True, text=True, timeout=30,
    )
    return proc.stdout if proc.returncode == 0 else ""


def _read_pdf(path: Path) -> str:
    # poppler keeps layout spacing; pypdf is the portable fallback
    text = _pdftotext(path)
    if text.strip():
        return text
    pages = PdfReader(str(path)).pages
    return "\n".join(_fix_spacing(page.extract_text() or "") for page in pages)


def _read_docx(path: Path) -> str:
    with zipfile.ZipFile(path) as archive:
        root = ElementTree.fromstring(archive.read("word/document.xml"))
    lines = ("".join(run.text or "" for run in para.iter(f"{_W}t")) for para in root.iter(f"{_W}p"))
    return "\n".join(line for line in lines if line)


def _read_txt(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="ignore")


_UNREADABLE = (
    OSError, KeyError, ValueError, PyPdfError,
    zipfile.BadZipFile, ElementTree.ParseError, subprocess.SubprocessError,
)


READERS: dict[str, Callable[[Path], str]] = {
    ".pdf": _read_pdf,
    ".docx": _read_docx,
    ".txt": _read_txt,
}


def extract_text(path: Path) -> str:
    reader = READERS.get(path.suffix.lower())
    if reader is None:
        raise ValueError(f"Unsupported resume format: {path.suffix}")
    return reader(path)


def load_resume(directory: Path, explicit: str = "") -> tuple[str, str]:
    """``(path, text)`` for the configured or discovered resume.

    Both are empty when there is no resume. An unreadable file keeps its
    path so Easy Apply can still upload it.
    """
    if explicit:
        path: Path | None = Path(explicit).expanduser()
        if not path.exists():
            log.warning("Configured resume %s not found", explicit)
            return "", ""
    else:
        path = find_resume(directory)
        if path is None:
            return "", ""
    try:
        text = extract_text(path)
    except _UNREADABLE as exc:
        log.warning("Resume %s is not readable as text: %s", path.name, exc)
        text = ""
    log.info("Using resume %s (%d characters)", path.name, len(text))
    return str(path), text
