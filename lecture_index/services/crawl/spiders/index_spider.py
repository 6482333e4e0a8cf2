from __future__ import annotations

from typing import Collection, List, Optional

import httpx
from selectolax.parser import HTMLParser

from lecture_index.config import DEFAULT_SECTIONS_URL

from ..base import Spider

# Section tokens are long opaque ids; shorter anchors are navigation/footer links.
MIN_LINK_ID_LENGTH = 30


class IndexSpider(Spider):
    """Reads the sections directory listing and finds section ids not yet catalogued.

    The listing is an HTML table of anchors whose text is the section id followed
    by a trailing '/'.
    """

    name = "sections_index"

    def __init__(
        self,
        *,
        sections_url: str = DEFAULT_SECTIONS_URL,
        link_sel: str = "table a",
        timeout: float = 15.0,
        headers: Optional[dict] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(timeout=timeout, headers=headers, client=client)
        self.sections_url = sections_url
        self.link_sel = link_sel

    # --- Public API ---
    def fetch(self) -> str:
        """Return the raw index document. Raises TransportError on failure."""
        return self._get(self.sections_url)

    def parse_index(self, html: str) -> List[str]:
        doc = HTMLParser(html)
        return extract_link_tokens(doc, self.link_sel)

    def discover_new_links(self, html: str, existing: Collection[str]) -> List[str]:
        """Candidate link ids in document order, excluding short and known ones."""
        out: List[str] = []
        seen: set = set()
        for token in self.parse_index(html):
            if len(token) <= MIN_LINK_ID_LENGTH:
                continue
            if token in existing or token in seen:
                continue
            seen.add(token)
            out.append(token)
        return out


def extract_link_tokens(doc: HTMLParser, link_sel: str = "table a") -> List[str]:
    """Anchor texts under link_sel, each with its one trailing delimiter removed."""
    tokens: List[str] = []
    for node in doc.css(link_sel) or []:
        raw = node.text(deep=True) or ""
        tokens.append(raw[:-1])
    return tokens
