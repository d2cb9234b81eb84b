"""
Rich-text document model for cell content.

A cell's sanitized HTML is held as a list of styled runs. Each run carries
bold/underline flags and optionally the id of the highlight mark it belongs
to; the mark table maps ids to colours. Selections are plain-text offsets
(start inclusive, end exclusive), which lets the editing operations be
exercised without any DOM.

Serialization is canonical: runs are grouped by mark, adjacent runs with the
same style are merged and each styled run is written as <b><u>text</u></b>.
"""

import html
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag

from bailey.grid.sanitizer import sanitize_html
from bailey.utils.constants import HIGHLIGHT_CYCLE


@dataclass
class Run:
    text: str
    bold: bool = False
    underline: bool = False
    mark: Optional[int] = None

    @property
    def style(self) -> tuple:
        return (self.bold, self.underline, self.mark)

    @property
    def plain(self) -> bool:
        return not (self.bold or self.underline or self.mark is not None)


class RichText:
    """Editable document of styled runs."""

    def __init__(self, runs: Optional[List[Run]] = None, marks: Optional[Dict[int, str]] = None):
        self.runs: List[Run] = list(runs or [])
        self.marks: Dict[int, str] = dict(marks or {})
        self._next_mark = max(self.marks, default=0) + 1
        self._normalize()

    @classmethod
    def from_html(cls, content: str) -> "RichText":
        """Parse cell HTML (sanitized first)."""
        doc = cls()
        soup = BeautifulSoup(sanitize_html(content), "html.parser")
        for child in soup.children:
            doc._read(child, False, False, None)
        doc._normalize()
        return doc

    def _read(self, node, bold: bool, underline: bool, mark: Optional[int]) -> None:
        if isinstance(node, NavigableString):
            self.runs.append(Run(str(node), bold, underline, mark))
            return
        if not isinstance(node, Tag):
            return
        if node.name == "b":
            bold = True
        elif node.name == "u":
            underline = True
        elif node.name == "mark":
            mark = self._new_mark(node.get("data-color") or "")
        for child in node.children:
            self._read(child, bold, underline, mark)

    def _new_mark(self, color: str) -> int:
        mark_id = self._next_mark
        self._next_mark += 1
        self.marks[mark_id] = color
        return mark_id

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)

    def __len__(self) -> int:
        return sum(len(run.text) for run in self.runs)

    def to_html(self) -> str:
        out = []
        i = 0
        while i < len(self.runs):
            mark = self.runs[i].mark
            j = i
            while j < len(self.runs) and self.runs[j].mark == mark:
                j += 1
            inner = "".join(_run_html(run) for run in self.runs[i:j])
            if mark is None:
                out.append(inner)
            else:
                out.append(f'<mark data-color="{self.marks.get(mark, "")}">{inner}</mark>')
            i = j
        return "".join(out)

    def mark_at(self, offset: int) -> Optional[int]:
        """Mark id of the character at offset, if any."""
        pos = 0
        for run in self.runs:
            if pos <= offset < pos + len(run.text):
                return run.mark
            pos += len(run.text)
        return None

    def _clamp(self, start: int, end: int) -> tuple:
        size = len(self)
        start = max(0, min(start, size))
        end = max(start, min(end, size))
        return start, end

    def _split(self, offset: int) -> int:
        """Ensure a run boundary at offset; return the index of the run starting there."""
        pos = 0
        for i, run in enumerate(self.runs):
            if offset == pos:
                return i
            end = pos + len(run.text)
            if offset < end:
                cut = offset - pos
                self.runs[i:i + 1] = [
                    replace(run, text=run.text[:cut]),
                    replace(run, text=run.text[cut:]),
                ]
                return i + 1
            pos = end
        return len(self.runs)

    def _normalize(self) -> None:
        merged: List[Run] = []
        for run in self.runs:
            if not run.text:
                continue
            if merged and merged[-1].style == run.style:
                merged[-1] = replace(merged[-1], text=merged[-1].text + run.text)
            else:
                merged.append(run)
        self.runs = merged
        used = {run.mark for run in self.runs if run.mark is not None}
        self.marks = {k: v for k, v in self.marks.items() if k in used}

    def insert_text(self, start: int, end: int, text: str) -> None:
        """Replace [start, end) with text, styled like the character before start."""
        start, end = self._clamp(start, end)
        i = self._split(start)
        j = self._split(end)
        if i > 0:
            template = self.runs[i - 1]
        elif i < len(self.runs):
            template = self.runs[i]
        else:
            template = Run("")
        del self.runs[i:j]
        if text:
            self.runs.insert(i, replace(template, text=text))
        self._normalize()

    def _toggle(self, start: int, end: int, attr: str) -> bool:
        start, end = self._clamp(start, end)
        if start == end:
            return False
        i = self._split(start)
        j = self._split(end)
        selected = self.runs[i:j]
        value = not all(getattr(run, attr) for run in selected)
        for k in range(i, j):
            self.runs[k] = replace(self.runs[k], **{attr: value})
        self._normalize()
        return True

    def toggle_bold(self, start: int, end: int) -> bool:
        """Bold the selection, or unbold it when it is already entirely bold."""
        return self._toggle(start, end, "bold")

    def toggle_underline(self, start: int, end: int) -> bool:
        return self._toggle(start, end, "underline")

    def _wrappable(self, start: int, end: int) -> bool:
        """
        A new mark can only surround whole elements: both ends of the selection
        must sit on a run boundary or inside unstyled text, unless the whole
        selection lies in one run. Existing marks cannot be nested.
        """
        pos = 0
        spans = []
        for run in self.runs:
            spans.append((pos, pos + len(run.text), run))
            pos += len(run.text)
        touched = [s for s in spans if s[0] < end and s[1] > start]
        if any(run.mark is not None for _, _, run in touched):
            return False
        if len(touched) == 1:
            return True
        first_start, _, first = touched[0]
        _, last_end, last = touched[-1]
        start_ok = first_start == start or first.plain
        end_ok = last_end == end or last.plain
        return start_ok and end_ok

    def cycle_highlight(self, start: int, end: int) -> bool:
        """
        Highlight shortcut.

        Inside an existing mark the colour advances yellow -> green -> blue and
        the fourth application removes the mark, keeping its text. Otherwise
        the selection is wrapped in a new yellow mark. A collapsed selection,
        or one that would split a styled element, is left untouched.

        Returns:
            True if the document changed
        """
        start, end = self._clamp(start, end)
        if start == end:
            return False

        mark = self.mark_at(start)
        if mark is not None:
            current = self.marks.get(mark) or HIGHLIGHT_CYCLE[0]
            idx = HIGHLIGHT_CYCLE.index(current) if current in HIGHLIGHT_CYCLE else -1
            if 0 <= idx < len(HIGHLIGHT_CYCLE) - 1:
                self.marks[mark] = HIGHLIGHT_CYCLE[idx + 1]
            else:
                self.runs = [replace(run, mark=None) if run.mark == mark else run for run in self.runs]
                self._normalize()
            return True

        if not self._wrappable(start, end):
            return False
        i = self._split(start)
        j = self._split(end)
        mark = self._new_mark(HIGHLIGHT_CYCLE[0])
        for k in range(i, j):
            self.runs[k] = replace(self.runs[k], mark=mark)
        self._normalize()
        return True


def _run_html(run: Run) -> str:
    out = html.escape(run.text, quote=False)
    if run.underline:
        out = f"<u>{out}</u>"
    if run.bold:
        out = f"<b>{out}</b>"
    return out
