"""Document store interface and a filesystem-backed implementation."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Protocol

from incident_sync.core.models import HeadingInfo

logger = logging.getLogger(__name__)

_ATX_HEADING = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
_FENCE = re.compile(r"^ {0,3}(`{3,}|~{3,})")


def normalize_path(path: str) -> str:
    """Forward slashes only, no duplicate or trailing separators."""
    text = re.sub(r"/+", "/", path.replace("\\", "/"))
    if len(text) > 1:
        text = text.rstrip("/")
    return text


@dataclass(frozen=True, slots=True)
class NoteFile:
    path: str

    @property
    def basename(self) -> str:
        return Path(self.path).stem


class DocumentStore(Protocol):
    def get_file(self, path: str) -> NoteFile | None: ...

    def folder_exists(self, path: str) -> bool: ...

    def read(self, doc: NoteFile) -> str: ...

    def process(self, doc: NoteFile, fn: Callable[[str], str]) -> str: ...

    def create(self, path: str, text: str) -> NoteFile: ...

    def create_folder(self, path: str) -> None: ...

    def list_files(self, prefix: str) -> list[NoteFile]: ...

    def headings(self, doc: NoteFile) -> list[HeadingInfo] | None: ...


def scan_headings(text: str) -> list[HeadingInfo]:
    """ATX headings outside front matter and fenced code blocks."""
    out: list[HeadingInfo] = []
    lines = text.split("\n")
    idx = 0
    if lines and lines[0].strip() == "---":
        for end in range(1, len(lines)):
            if lines[end].strip() == "---":
                idx = end + 1
                break
    fence: str | None = None
    for lineno in range(idx, len(lines)):
        line = lines[lineno]
        fence_match = _FENCE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
            continue
        if fence is not None:
            continue
        m = _ATX_HEADING.match(line)
        if m:
            out.append(HeadingInfo(heading=(m.group(2) or "").strip(), level=len(m.group(1)), line=lineno))
    return out


class FileSystemStore:
    """Markdown notes under a root directory; paths are root-relative."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _abs(self, path: str) -> Path:
        target = (self.root / normalize_path(path)).resolve()
        if not target.is_relative_to(self.root):
            raise ValueError(f"Path escapes the notes root: {path}")
        return target

    def get_file(self, path: str) -> NoteFile | None:
        target = self._abs(path)
        if target.is_file():
            return NoteFile(normalize_path(path))
        return None

    def folder_exists(self, path: str) -> bool:
        return self._abs(path).is_dir()

    def read(self, doc: NoteFile) -> str:
        return self._abs(doc.path).read_text(encoding="utf-8")

    def process(self, doc: NoteFile, fn: Callable[[str], str]) -> str:
        """Rewrite ``doc`` with ``fn(current_text)`` via a temp file + rename."""
        target = self._abs(doc.path)
        current = target.read_text(encoding="utf-8")
        updated = fn(current)
        if updated == current:
            return updated
        tmp_file = None
        try:
            with NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=str(target.parent)) as tmp:
                tmp.write(updated)
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_file = tmp.name
            os.replace(tmp_file, target)
        except OSError:
            if tmp_file and os.path.exists(tmp_file):
                os.unlink(tmp_file)
            raise
        return updated

    def create(self, path: str, text: str) -> NoteFile:
        target = self._abs(path)
        if not target.parent.is_dir():
            raise FileNotFoundError(f"Parent folder does not exist: {target.parent}")
        with target.open("x", encoding="utf-8") as fh:
            fh.write(text)
        return NoteFile(normalize_path(path))

    def create_folder(self, path: str) -> None:
        self._abs(path).mkdir(parents=True, exist_ok=True)

    def list_files(self, prefix: str) -> list[NoteFile]:
        folder = self._abs(prefix)
        if not folder.is_dir():
            return []
        return [
            NoteFile(p.relative_to(self.root).as_posix())
            for p in sorted(folder.rglob("*.md"))
            if p.is_file()
        ]

    def headings(self, doc: NoteFile) -> list[HeadingInfo] | None:
        target = self._abs(doc.path)
        if not target.is_file():
            return None
        return scan_headings(target.read_text(encoding="utf-8"))
