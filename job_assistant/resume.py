"""Read resume text from the resume folder (PDF via pypdf, DOCX via zipfile, TXT)."""
from __future__ import annotations

import re
import zipfile
from pathlib import Path
from xml.etree import ElementTree

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from job_assistant.log import get_logger

log = get_logger(__name__)

RESUME_SUFFIXES: tuple[str, ...] = (".pdf", ".docx", ".txt")


def find_resume(folder: Path) -> Path | None:
    """First PDF, DOCX or TXT in the folder, in that order of preference."""
    if not folder.exists():
        return None
    for ext in RESUME_SUFFIXES:
        for p in sorted(folder.iterdir()):
            if p.suffix.lower() == ext and p.is_file():
                return p
    return None


def extract_text(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix == ".txt":
        return path.read_text(encoding="utf-8", errors="ignore")
    if suffix == ".docx":
        return _extract_docx(path)
    if suffix == ".pdf":
        return _extract_pdf(path)
    raise ValueError(f"Unsupported resume format: {suffix}")


def _fix_spacing(text: str) -> str:
    """Re-insert spaces where PDF extraction glued words together."""
    fixed = re.sub(r"([a-z])([A-Z])", r"\1 \2", text)
    fixed = re.sub(r"([.!?,;:])([A-Za-z])", r"\1 \2", fixed)
    return fixed


def _extract_pdf(path: Path) -> str:
    reader = PdfReader(str(path))
    return "\n".join(_fix_spacing(page.extract_text() or "") for page in reader.pages)


def _extract_docx(path: Path) -> str:
    ns = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
    texts: list[str] = []
    with zipfile.ZipFile(path) as zf:
        with zf.open("word/document.xml") as f:
            tree = ElementTree.parse(f)
            for para in tree.iter(f"{ns}p"):
                parts = [node.text for node in para.iter(f"{ns}t") if node.text]
                if parts:
                    texts.append("".join(parts))
    return "\n".join(texts)


def load_resume_text(folder: Path) -> str:
    path = find_resume(folder)
    if path is None:
        return ""
    try:
        text = extract_text(path).strip()
    except (OSError, ValueError, PdfReadError, zipfile.BadZipFile, ElementTree.ParseError) as exc:
        log.warning("Could not read resume %s: %s", path.name, exc)
        return ""
    log.info("Loaded resume %s (%d chars)", path.name, len(text))
    return text
