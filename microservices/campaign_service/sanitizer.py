"""
HTML allow-list sanitizer for campaign text

Keeps a small set of formatting tags and link attributes, drops every
other tag (and the full content of script-like elements), and escapes
text. Output is safe to store and render.
"""

from html import escape
from html.parser import HTMLParser
from typing import List, Optional, Tuple

ALLOWED_TAGS = frozenset({
    "p", "b", "i", "em", "strong", "a", "ul", "ol", "li", "br",
    "h1", "h2", "h3", "h4", "h5", "h6", "hr",
})
ALLOWED_ATTRIBUTES = frozenset({"href", "target", "rel"})
DROP_WITH_CONTENT = frozenset({"script", "style", "iframe", "form", "input", "button", "textarea", "select"})
VOID_TAGS = frozenset({"br", "hr"})
SAFE_URL_SCHEMES = ("http://", "https://", "mailto:")


class _AllowListParser(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.out: List[str] = []
        self._open: List[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in DROP_WITH_CONTENT:
            if tag not in ("input",):
                self._skip_depth += 1
            return
        if self._skip_depth or tag not in ALLOWED_TAGS:
            return
        self.out.append(self._render_start(tag, attrs))
        if tag not in VOID_TAGS:
            self._open.append(tag)

    def handle_startendtag(self, tag, attrs):
        if self._skip_depth or tag not in ALLOWED_TAGS:
            return
        self.out.append(self._render_start(tag, attrs))

    def handle_endtag(self, tag):
        if tag in DROP_WITH_CONTENT:
            if self._skip_depth and tag != "input":
                self._skip_depth -= 1
            return
        if self._skip_depth or tag not in self._open:
            return
        # close anything left open inside this element
        while self._open:
            current = self._open.pop()
            self.out.append(f"</{current}>")
            if current == tag:
                break

    def handle_data(self, data):
        if not self._skip_depth:
            self.out.append(escape(data, quote=False))

    def close(self):
        super().close()
        while self._open:
            self.out.append(f"</{self._open.pop()}>")

    @staticmethod
    def _render_start(tag: str, attrs: List[Tuple[str, Optional[str]]]) -> str:
        kept = []
        for name, value in attrs:
            if name not in ALLOWED_ATTRIBUTES or value is None:
                continue
            if name == "href" and not value.strip().lower().startswith(SAFE_URL_SCHEMES):
                continue
            kept.append(f' {name}="{escape(value, quote=True)}"')
        return f"<{tag}{''.join(kept)}>"


class AllowListSanitizer:
    """Default HtmlSanitizerProtocol implementation"""

    def sanitize(self, html: str) -> str:
        if not html:
            return ""
        parser = _AllowListParser()
        parser.feed(html)
        parser.close()
        return "".join(parser.out)


__all__ = ["AllowListSanitizer", "ALLOWED_TAGS", "ALLOWED_ATTRIBUTES"]
