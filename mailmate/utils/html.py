"""Plain text from HTML-only message bodies.

Notification mail often ships without a text/plain part. Keyword matching and
classifier prompts only see text, so markup is flattened here: non-content
elements are dropped, block boundaries become line breaks and runs of
whitespace collapse.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment

_DROPPED_TAGS = ["script", "style", "head", "title", "noscript", "template"]
_INLINE_SPACE = re.compile(r"[ \t\xa0]+")
_BLANK_RUNS = re.compile(r"\n{3,}")


def html_to_text(html: str) -> str:
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for element in soup(_DROPPED_TAGS):
        element.decompose()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()

    lines = (_INLINE_SPACE.sub(" ", line).strip() for line in soup.get_text("\n").splitlines())
    return _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip()
