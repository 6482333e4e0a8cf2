from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, Optional, Union

import httpx

from lecture_index.config import DEFAULT_SECTION_SUFFIX, DEFAULT_SECTIONS_URL
from lecture_index.models.recording import RecordingRecord

from ..base import ParseError, Spider

# first child of <section> -> {record field: tag inside that child}
FIELD_PATHS: Dict[str, Dict[str, str]] = {
    "course": {"name": "name", "id": "identifier"},
    "portal": {"url": "url"},
    "term": {"term": "name"},
}


class SectionSpider(Spider):
    name = "section_xml"

    def __init__(
        self,
        *,
        sections_url: str = DEFAULT_SECTIONS_URL,
        suffix: str = DEFAULT_SECTION_SUFFIX,
        timeout: float = 15.0,
        headers: Optional[dict] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(timeout=timeout, headers=headers, client=client)
        self.sections_url = sections_url
        self.suffix = suffix

    def section_url(self, link_id: str) -> str:
        return f"{self.sections_url}{link_id}{self.suffix}"

    def fetch(self, link_id: str) -> RecordingRecord:
        """Fetch and parse one section description.

        Raises TransportError if the GET fails and ParseError if the document
        does not describe a section.
        """
        body = self._get_bytes(self.section_url(link_id), link_id=link_id)
        return self.parse_section_xml(body, link_id=link_id)

    @staticmethod
    def parse_section_xml(xml_doc: Union[str, bytes], *, link_id: str) -> RecordingRecord:
        """Build a record from the first course/portal/term elements of a section.

        Pass bytes when the document came off the wire so the XML declaration's
        encoding is honoured.
        """
        try:
            root = ET.fromstring(xml_doc)
        except ET.ParseError as exc:
            raise ParseError(link_id, f"malformed XML ({exc})") from exc
        if root.tag != "section":
            raise ParseError(link_id, f"unexpected root element <{root.tag}>")

        values: Dict[str, str] = {}
        for parent_tag, children in FIELD_PATHS.items():
            parent = root.find(parent_tag)
            if parent is None:
                raise ParseError(link_id, f"missing <{parent_tag}>")
            for field, child_tag in children.items():
                node = parent.find(child_tag)
                if node is None:
                    raise ParseError(link_id, f"missing <{parent_tag}/{child_tag}> in first <{parent_tag}>")
                values[field] = (node.text or "").strip()
        if not values["id"]:
            raise ParseError(link_id, "empty course identifier")
        return RecordingRecord(**values)
