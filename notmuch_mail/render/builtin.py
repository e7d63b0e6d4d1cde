"""
Dependency-free HTML to text conversion for terminal display.

The tokenizer consumes characters one at a time and only distinguishes
text from markup; it never builds a DOM. Block-level tags become line
breaks, table cells become tabs, everything else is dropped. Entities are
decoded on the finished text: every HTML5 named reference (``&nbsp;``
becomes a plain space) and numeric references. Unknown names are left as
they are.
"""

import re
from html.entities import html5

from notmuch_mail.render.base import HtmlToTextConverter, decode_html

TAG_NAME = re.compile(r"\s*(/?)\s*([a-zA-Z][a-zA-Z0-9]*)")
HREF = re.compile(r"""href\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""", re.IGNORECASE)
ENTITY = re.compile(r"&(#[0-9]{1,7}|#[xX][0-9a-fA-F]{1,6}|[a-zA-Z][a-zA-Z0-9]*);")
EXCESS_NEWLINES = re.compile(r"\n{3,}")

# wrapped as ordinary text rather than kept as U+00A0
NAMED_OVERRIDES = {"nbsp": " "}

LINE_BREAK_TAGS = frozenset({"p", "br", "li", "tr"})
HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
CELL_TAGS = frozenset({"td", "th"})
SKIP_CONTENT_TAGS = frozenset({"style", "script", "head", "title"})
COLLAPSIBLE = " \t\r"

TEXT, TAG, COMMENT, SKIP, SKIP_TAG = range(5)


def decode_entities(text: str) -> str:
    def replace(match: re.Match) -> str:
        ref = match.group(1)
        if ref[0] == "#":
            try:
                codepoint = int(ref[2:], 16) if ref[1] in "xX" else int(ref[1:])
            except ValueError:
                return match.group(0)
            if codepoint == 0 or codepoint > 0x10FFFF or 0xD800 <= codepoint <= 0xDFFF:
                return match.group(0)
            return chr(codepoint)
        if ref.lower() in NAMED_OVERRIDES:
            return NAMED_OVERRIDES[ref.lower()]
        return html5.get(f"{ref};") or html5.get(f"{ref.lower()};") or match.group(0)

    return ENTITY.sub(replace, text)


def wrap_line(line: str, width: int) -> list[str]:
    """Greedy word wrap; words longer than ``width`` get a line of their own"""
    lines: list[str] = []
    current = ""
    for word in line.split(" "):
        if not word:
            continue
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= width:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines or [""]


def reflow(text: str, width: int) -> str:
    wrapped: list[str] = []
    for line in text.split("\n"):
        wrapped.extend(wrap_line(line, width))
    return EXCESS_NEWLINES.sub("\n\n", "\n".join(wrapped)).strip()


class HtmlTextTokenizer:
    """Incremental HTML tokenizer producing unwrapped, undecoded text.

    ``feed`` may be called with arbitrary chunks; ``close`` returns the
    text. An unterminated tag at the end of input is discarded.
    """

    def __init__(self, preserve_links: bool = False):
        self.preserve_links = preserve_links
        self._out: list[str] = []
        self._last = "\n"
        self._state = TEXT
        self._tag: list[str] = []
        self._skip_name = ""
        self._comment_tail = ""
        self._link: tuple[str, int] | None = None

    def _emit(self, text: str) -> None:
        self._out.append(text)
        self._last = text[-1]

    def feed(self, chunk: str) -> None:
        for char in chunk:
            state = self._state
            if state == TEXT:
                if char == "<":
                    self._state = TAG
                    self._tag = []
                elif char == ">":
                    continue
                elif char in COLLAPSIBLE:
                    if self._last not in " \t\n":
                        self._emit(" ")
                else:
                    self._emit(char)
            elif state == TAG:
                if char == ">":
                    self._state = TEXT
                    self._handle_tag("".join(self._tag))
                else:
                    self._tag.append(char)
                    if len(self._tag) == 3 and self._tag == ["!", "-", "-"]:
                        self._state = COMMENT
                        self._comment_tail = ""
            elif state == COMMENT:
                self._comment_tail = (self._comment_tail + char)[-3:]
                if self._comment_tail == "-->":
                    self._state = TEXT
            elif state == SKIP:
                if char == "<":
                    self._state = SKIP_TAG
                    self._tag = []
            elif state == SKIP_TAG:
                if char == "<":
                    self._tag = []
                elif char == ">":
                    match = TAG_NAME.match("".join(self._tag))
                    if match and match.group(1) and match.group(2).lower() == self._skip_name:
                        self._state = TEXT
                    else:
                        self._state = SKIP
                else:
                    self._tag.append(char)

    def _handle_tag(self, raw: str) -> None:
        match = TAG_NAME.match(raw)
        if not match:
            return
        closing = bool(match.group(1))
        name = match.group(2).lower()
        if closing:
            if name == "p":
                self._emit("\n")
            elif name in HEADING_TAGS:
                self._emit("\n\n")
            elif name == "a":
                self._close_link()
            return
        if name in SKIP_CONTENT_TAGS and not raw.rstrip().endswith("/"):
            self._state = SKIP
            self._skip_name = name
        elif name in LINE_BREAK_TAGS:
            self._emit("\n")
        elif name in HEADING_TAGS:
            self._emit("\n\n")
        elif name in CELL_TAGS:
            self._emit("\t")
        elif name == "a" and self.preserve_links:
            href = HREF.search(raw)
            if href:
                url = next(g for g in href.groups() if g is not None)
                self._link = (url.strip(), len(self._out))

    def _close_link(self) -> None:
        if self._link is None:
            return
        url, start = self._link
        self._link = None
        text = "".join(self._out[start:]).strip()
        url = url.replace("<", "").replace(">", "")
        if url and decode_entities(url) != decode_entities(text) and url.removeprefix("mailto:") != text:
            self._emit(f" ({url})")

    def close(self) -> str:
        self._state = TEXT
        self._tag = []
        self._link = None
        return "".join(self._out)


class BuiltinConverter(HtmlToTextConverter):
    name = "builtin"

    def __init__(self, width: int = 80, preserve_links: bool = False):
        self.width = width
        self.preserve_links = preserve_links

    def render(self, html: str | bytes) -> str:
        if not html:
            return ""
        tokenizer = HtmlTextTokenizer(preserve_links=self.preserve_links)
        tokenizer.feed(decode_html(html))
        return reflow(decode_entities(tokenizer.close()), self.width)

    async def convert(self, html: str | bytes) -> str:
        return self.render(html)

    async def is_available(self) -> bool:
        return True
