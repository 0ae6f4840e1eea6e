"""
Fragment folders.

A fragment is the body of a JSON array (brackets removed) that gets spliced
into a host-provided array text. ``merge`` does a structural splice at the
last ``]`` and never parses the host text.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from .logger import get_logger

log = get_logger(__name__)


def strip_array_brackets(text: str) -> str:
    """Trim *text* and remove one enclosing ``[`` ... ``]`` pair if present."""
    body = text.strip()
    if len(body) >= 2 and body[0] == "[" and body[-1] == "]":
        body = body[1:-1].strip()
    return body


def read_fragment_folder(folder: Path, pattern: str = "*.json") -> List[str]:
    """Read the fragment files in *folder* in lexicographic filename order.

    Unreadable files are logged and skipped; empty bodies are dropped.
    """
    if not folder.is_dir():
        log.warning(f"[Fragments] Folder not found: {folder}")
        return []

    fragments: List[str] = []
    for path in sorted(folder.glob(pattern), key=lambda p: p.name):
        if not path.is_file():
            continue
        try:
            body = strip_array_brackets(path.read_text(encoding="utf-8-sig"))
        except (OSError, UnicodeDecodeError) as exc:
            log.error(f"[Fragments] Failed to read {path}: {exc}")
            continue
        if body:
            fragments.append(body)
    return fragments


class FragmentMerger:
    """Holds pre-extracted fragments per resource name."""

    def __init__(self) -> None:
        self._fragments: Dict[str, List[str]] = {}

    def add(self, resource: str, fragments: List[str]) -> int:
        kept = [f for f in fragments if f and f.strip()]
        if kept:
            self._fragments.setdefault(resource, []).extend(kept)
        return len(kept)

    def merge(self, original: str, resource: str) -> str:
        fragments = self._fragments.get(resource)
        if not fragments or not original or not original.strip():
            return original

        close = original.rfind("]")
        if close < 0:
            return original

        # An array that is only whitespace before the bracket counts as empty.
        empty = True
        i = close - 1
        while i >= 0 and original[i].isspace():
            i -= 1
        if i >= 0 and original[i] != "[":
            empty = False

        parts = [original[:close]]
        if not empty:
            parts.append(",")
        parts.append(",".join(fragments))
        parts.append("]")
        return "".join(parts)

    def processor_for(self, resource: str):
        """Return a text processor that merges *resource*'s fragments."""

        def _merge(text: str) -> str:
            return self.merge(text, resource)

        _merge.__name__ = f"merge_fragments_{resource}"
        return _merge

    def clear(self) -> None:
        self._fragments.clear()
        log.info("[Fragments] Fragment lists cleared")
