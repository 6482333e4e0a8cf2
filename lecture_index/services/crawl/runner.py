from __future__ import annotations

import argparse
import enum
import logging
from typing import Any, Dict, List, Optional

import httpx

from lecture_index.config import Settings, get_settings
from lecture_index.models.recording import Catalog
from lecture_index.services.report_service import generate_report

from .base import CrawlError, ParseError, PersistError, TransportError
from .catalog import load_catalog, merge_records, persist_catalog
from .spiders.index_spider import IndexSpider
from .spiders.section_spider import SectionSpider

logger = logging.getLogger(__name__)


class CrawlState(enum.Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    FETCHING = "fetching"
    MERGING = "merging"
    PERSISTING = "persisting"
    REPORTING = "reporting"


class CrawlDriver:
    """Run one discover -> fetch -> merge -> persist -> report pass.

    Sections are fetched strictly one after another over a single client, so
    there is never more than one request in flight and the catalog has a single
    writer. A section that fails to fetch or parse is logged and skipped; index
    and persist failures propagate to the caller.
    """

    def __init__(self, settings: Optional[Settings] = None, *, client: Optional[httpx.Client] = None) -> None:
        self.settings = settings or get_settings()
        self.client = client
        self.catalog: Catalog = {}
        self.state = CrawlState.IDLE
        self.skipped: List[str] = []

    def run(self) -> Dict[str, Any]:
        self.catalog = load_catalog(self.settings.catalog_path)
        self.skipped = []
        try:
            if self.client is not None:
                return self._run(self.client)
            headers = {"User-Agent": self.settings.user_agent}
            with httpx.Client(timeout=self.settings.timeout, headers=headers, follow_redirects=True) as client:
                return self._run(client)
        finally:
            self._enter(CrawlState.IDLE)

    def _enter(self, state: CrawlState) -> None:
        if state is not self.state:
            logger.debug("crawl state %s -> %s", self.state.value, state.value)
        self.state = state

    def _run(self, client: httpx.Client) -> Dict[str, Any]:
        s = self.settings
        index = IndexSpider(sections_url=s.sections_url, client=client)
        sections = SectionSpider(sections_url=s.sections_url, suffix=s.section_suffix, client=client)

        self._enter(CrawlState.DISCOVERING)
        logger.info("Grabbing latest links...")
        html = index.fetch()
        logger.info("Finished grabbing links, processing...")
        queue = index.discover_new_links(html, self.catalog)
        if not queue:
            logger.info("Failed to find any new recording links.")
            return self._summary("nothing_to_do", discovered=0, added=0)

        added = 0
        for n, link_id in enumerate(queue, start=1):
            self._enter(CrawlState.FETCHING)
            logger.info("Processing %d/%d (%s)", n, len(queue), link_id)
            try:
                rec = sections.fetch(link_id)
            except (TransportError, ParseError) as exc:
                logger.warning("Skipping %s: %s", link_id, exc)
                self.skipped.append(link_id)
                continue
            self._enter(CrawlState.MERGING)
            added += merge_records(self.catalog, [(link_id, rec)])
            logger.info("Added %s %s", rec.id, rec.name)

        self._enter(CrawlState.PERSISTING)
        logger.info("Recordings updated, saving...")
        try:
            persist_catalog(self.catalog, s.catalog_path)
        except PersistError as exc:
            # Emit the catalog so the scraped data survives the failed write
            logger.error("Failed to save recordings to %s (%s). Catalog follows:\n%s", exc.path, exc.reason, exc.payload)
            raise
        logger.info("Finished saving recordings!")

        self._enter(CrawlState.REPORTING)
        generate_report(self.catalog, s.report_path, handbook_url=s.handbook_url)
        return self._summary("completed", discovered=len(queue), added=added, report_path=s.report_path)

    def _summary(self, status: str, *, discovered: int, added: int, report_path: Optional[str] = None) -> Dict[str, Any]:
        return {
            "status": status,
            "discovered": discovered,
            "added": added,
            "skipped": len(self.skipped),
            "catalog_size": len(self.catalog),
            "catalog_path": self.settings.catalog_path,
            "report_path": report_path,
        }


def rebuild_report(settings: Settings) -> str:
    catalog = load_catalog(settings.catalog_path)
    return generate_report(catalog, settings.report_path, handbook_url=settings.handbook_url)


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Update the lecture recordings catalog and readable index")
    parser.add_argument("--catalog", help="Catalog JSON path (default: LECTURE_INDEX_CATALOG_PATH or data/recordings.json)")
    parser.add_argument("--report", help="Report HTML path (default: LECTURE_INDEX_REPORT_PATH or data/recordings.htm)")
    parser.add_argument("--report-only", action="store_true", help="Rebuild the HTML report from the catalog without crawling")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except RuntimeError as exc:
        parser.error(str(exc))
    if args.catalog:
        settings.catalog_path = args.catalog
    if args.report:
        settings.report_path = args.report

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.report_only:
            rebuild_report(settings)
            return 0
        result = CrawlDriver(settings).run()
    except CrawlError as exc:
        logger.error("Aborting: %s", exc)
        return 1

    logger.info(
        "Run %s: %d discovered, %d added, %d skipped, %d recordings catalogued",
        result["status"],
        result["discovered"],
        result["added"],
        result["skipped"],
        result["catalog_size"],
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
