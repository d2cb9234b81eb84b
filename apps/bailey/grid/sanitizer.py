"""
Cell content sanitizer.

Cells store a small HTML subset: <b>, <u> and <mark data-color="...">.
Block elements become newlines, <br> becomes a newline, every other tag is
unwrapped (its children are kept). Text is re-escaped on output, so the
result is canonical and sanitizing it again returns the same string.
"""

import html
import re

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

ALLOWED_MARK_COLORS = ("yellow", "green", "blue", "")

_TRAILING_NEWLINES = re.compile(r"\n+\Z")

# Text between tags that holds only the whitespace html.parser collapses
_BLANK_TEXT = re.compile(r"(?<![^>])[ \t\n\r\f]+(?![^<])")


def _collapse_blank(match) -> str:
    # Same collapse BeautifulSoup applies to whitespace-only strings
    return "\n" if "\n" in match.group(0) else " "


def mark_color(value) -> str:
    """Coerce a data-color attribute to an allowed value ("" if unknown)."""
    if isinstance(value, list):  # bs4 returns lists for multi-valued attributes
        value = " ".join(value)
    value = value or ""
    return value if value in ALLOWED_MARK_COLORS else ""


def _walk(node) -> str:
    if isinstance(node, PreformattedString):
        # Comments, CDATA, doctypes, processing instructions
        return ""
    if isinstance(node, NavigableString):
        return html.escape(str(node), quote=False)
    if not isinstance(node, Tag):
        return ""

    tag = node.name.lower()
    children = "".join(_walk(child) for child in node.children)

    if tag in ("b", "strong"):
        return f"<b>{children}</b>"
    if tag == "u":
        return f"<u>{children}</u>"
    if tag == "mark":
        return f'<mark data-color="{mark_color(node.get("data-color"))}">{children}</mark>'
    if tag == "br":
        return "\n"
    if tag in ("div", "p"):
        return children + "\n" if children else ""
    return children


def sanitize_html(content: str) -> str:
    """
    Restrict arbitrary HTML to the cell subset.

    Args:
        content: HTML from an editable region, the database or an import file

    Returns:
        Canonical sanitized HTML with trailing newlines removed
    """
    if not content:
        return ""
    soup = BeautifulSoup(content, "html.parser")
    out = "".join(_walk(child) for child in soup.children)
    out = _BLANK_TEXT.sub(_collapse_blank, out)
    return _TRAILING_NEWLINES.sub("", out)


def plain_text(content: str) -> str:
    """Text of sanitized cell content with all markup removed."""
    if not content:
        return ""
    return BeautifulSoup(content, "html.parser").get_text()
