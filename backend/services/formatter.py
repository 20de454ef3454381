"""
Reply formatting for the chat widget.

Model text is parsed into a small block representation and rendered to HTML
in a single pass, so the output never depends on the order of regex
substitutions:

    Paragraph(lines, bold)   -> <p>line<br>line</p>
    BulletList(items)        -> <ul><li>item</li></ul>
    LinkButton(title, url)   -> <a class="course-btn" ...>title</a>

All text is HTML-escaped; the only markup in a reply is the markup produced
here.
"""
import html
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from models.course import Course
from config import COURSES_TITLE

WRAPPER_OPEN = '<div class="chat-wrapper">'

STYLE_BLOCK = """<style>
.chat-wrapper{font-size:14px;line-height:1.6;}
.chat-wrapper p{margin:0 0 8px;}
.chat-wrapper ul{margin:0 0 8px;padding-inline-start:18px;}
.courses-title{margin-top:16px;margin-bottom:10px;color:#c40000;font-weight:bold;}
.courses-container{display:flex;flex-direction:column;gap:12px;}
.course-btn{display:block;width:100%;max-width:420px;padding:12px 14px;background:#c40000;color:#fff;border-radius:8px;text-decoration:none;text-align:center;font-size:14px;}
.course-btn:hover{background:#a00000;}
</style>"""


@dataclass(frozen=True)
class Paragraph:
    lines: Tuple[str, ...]
    bold: bool = False


@dataclass(frozen=True)
class BulletList:
    items: Tuple[str, ...]


@dataclass(frozen=True)
class LinkButton:
    title: str
    url: str


Block = Union[Paragraph, BulletList, LinkButton]

_HEADING = re.compile(r"^\s*#{1,6}\s+(.*?)\s*#*\s*$")
_BOLD_LINE = re.compile(r"^\s*\*\*(.+?)\*\*\s*:?\s*$")
_BULLET = re.compile(r"^\s*(?:[-*•▪●]|\d+[.)-])\s+(.*)$")
_BREAK_TAG = re.compile(r"<\s*br\s*/?\s*>|</\s*(?:p|div|li|h[1-6])\s*>", re.IGNORECASE)
_LIST_ITEM_TAG = re.compile(r"<\s*li[^>]*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]+>")
_INLINE_BOLD = re.compile(r"\*\*(.+?)\*\*")


def html_to_text(text: str) -> str:
    """Reduce any HTML in model output to plain text with newlines."""
    text = _BREAK_TAG.sub("\n", text)
    text = _LIST_ITEM_TAG.sub("\n- ", text)
    text = _ANY_TAG.sub("", text)
    return html.unescape(text)


def parse_blocks(text: str) -> List[Block]:
    """
    Parse model text into blocks.

    Headings and whole-line bold become bold paragraphs, bullet and numbered
    lines become lists, consecutive text lines form one paragraph and any run
    of blank lines separates blocks.
    """
    blocks: List[Block] = []
    lines: List[str] = []
    items: List[str] = []

    def flush_paragraph():
        if lines:
            blocks.append(Paragraph(tuple(lines)))
            lines.clear()

    def flush_list():
        if items:
            blocks.append(BulletList(tuple(items)))
            items.clear()

    for raw_line in html_to_text(text or "").splitlines():
        line = raw_line.strip()

        if not line:
            flush_paragraph()
            flush_list()
            continue

        heading = _HEADING.match(line) or _BOLD_LINE.match(line)
        if heading:
            flush_paragraph()
            flush_list()
            title = heading.group(1).strip()
            if title:
                blocks.append(Paragraph((title,), bold=True))
            continue

        bullet = _BULLET.match(line)
        if bullet:
            flush_paragraph()
            if bullet.group(1).strip():
                items.append(bullet.group(1).strip())
            continue

        flush_list()
        lines.append(line)

    flush_paragraph()
    flush_list()
    return blocks


def course_buttons(courses: Iterable[Course]) -> List[LinkButton]:
    """One button per distinct course URL, in retrieval order."""
    seen = set()
    buttons = []
    for course in courses:
        if not course.url or course.url in seen:
            continue
        seen.add(course.url)
        buttons.append(LinkButton(title=course.title or course.url, url=course.url))
    return buttons


def _inline(text: str) -> str:
    return _INLINE_BOLD.sub(r"<strong>\1</strong>", html.escape(text, quote=False))


def render_block(block: Block) -> str:
    if isinstance(block, Paragraph):
        body = "<br>".join(_inline(line) for line in block.lines)
        return f"<p><strong>{body}</strong></p>" if block.bold else f"<p>{body}</p>"
    if isinstance(block, BulletList):
        return "<ul>" + "".join(f"<li>{_inline(item)}</li>" for item in block.items) + "</ul>"
    if isinstance(block, LinkButton):
        return (
            f'<a href="{html.escape(block.url, quote=True)}" target="_blank" '
            f'rel="noopener" class="course-btn">{html.escape(block.title, quote=False)}</a>'
        )
    raise TypeError(f"Unknown block type: {type(block).__name__}")


def render_reply(blocks: Sequence[Block], buttons: Sequence[LinkButton] = (), courses_title: str = COURSES_TITLE) -> str:
    """Render blocks and course buttons inside the styled chat wrapper."""
    parts = [STYLE_BLOCK, WRAPPER_OPEN]
    parts.extend(render_block(block) for block in blocks)
    if buttons:
        parts.append(f'<div class="courses-title">{html.escape(courses_title, quote=False)}</div>')
        parts.append('<div class="courses-container">')
        parts.extend(render_block(button) for button in buttons)
        parts.append("</div>")
    parts.append("</div>")
    return "\n".join(parts)


def is_formatted(text: str) -> bool:
    return bool(text) and WRAPPER_OPEN in text and STYLE_BLOCK in text


def format_reply(text: str, courses: Optional[Iterable[Course]] = None) -> str:
    """
    Format a model reply for the chat widget.

    Already formatted output is returned unchanged, so formatting twice never
    doubles the style block or the course buttons.
    """
    if is_formatted(text):
        return text
    return render_reply(parse_blocks(text), course_buttons(courses or []))
