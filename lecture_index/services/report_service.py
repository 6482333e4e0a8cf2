"""Readable recordings report.

Projects the catalog onto one group per subject, sorted by subject code, with
each subject's recorded terms listed in term-label order, and renders the
result as a static HTML page.
"""

from __future__ import annotations

import html
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List

from lecture_index.config import DEFAULT_HANDBOOK_URL
from lecture_index.models.recording import Catalog
from lecture_index.services.crawl.base import PersistError

logger = logging.getLogger(__name__)


@dataclass
class TermLink:
    term: str
    url: str


@dataclass
class CourseGroup:
    course_id: str
    course_name: str
    terms: List[TermLink] = field(default_factory=list)


def group_by_course(catalog: Catalog) -> List[CourseGroup]:
    """Group records by subject code.

    The first name seen for a subject (catalog order) is the one kept. Groups
    are ordered by subject code and terms by label, both as plain strings, so
    "Semester 10" sorts before "Semester 2".
    """
    groups: Dict[str, CourseGroup] = {}
    for rec in catalog.values():
        group = groups.get(rec.id)
        if group is None:
            group = groups[rec.id] = CourseGroup(course_id=rec.id, course_name=rec.name)
        group.terms.append(TermLink(term=rec.term, url=rec.url))

    ordered = [groups[k] for k in sorted(groups)]
    for group in ordered:
        group.terms.sort(key=lambda t: t.term)
    return ordered


def _render_group(group: CourseGroup, handbook_url: str) -> str:
    href = html.escape(f"{handbook_url}{group.course_id}", quote=True)
    label = html.escape(f"{group.course_id} - {group.course_name}")
    lines = [f'<a href="{href}" target="_blank">{label}</a><br>', "<ul>"]
    for t in group.terms:
        lines.append(
            f'<li><a href="{html.escape(t.url, quote=True)}" target="_blank">{html.escape(t.term)}</a></li>'
        )
    lines.append("</ul>")
    return "\n".join(lines)


def render_report(groups: List[CourseGroup], *, handbook_url: str = DEFAULT_HANDBOOK_URL) -> str:
    body = "\n".join(_render_group(g, handbook_url) for g in groups)
    return f"""<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>Lecture Recordings</title>
<style type="text/css">ul{{margin-top:0px;margin-bottom:0px;}}</style>
</head>
<body>
{body}
</body>
</html>
"""


def build_report(catalog: Catalog, *, handbook_url: str = DEFAULT_HANDBOOK_URL) -> str:
    return render_report(group_by_course(catalog), handbook_url=handbook_url)


def write_report(content: str, path: str) -> str:
    """Overwrite the report file. Raises PersistError if it cannot be written."""
    try:
        out_dir = os.path.dirname(path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as exc:
        raise PersistError(path, content, str(exc)) from exc
    return path


def generate_report(catalog: Catalog, path: str, *, handbook_url: str = DEFAULT_HANDBOOK_URL) -> str:
    """Rebuild the readable recordings page from scratch and write it to path."""
    logger.info("Updating readable recordings...")
    content = build_report(catalog, handbook_url=handbook_url)
    write_report(content, path)
    logger.info("Done updating! (%d recordings, %s)", len(catalog), path)
    return path
