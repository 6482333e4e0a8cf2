import json
import logging
from pathlib import Path

import httpx
import pytest

from lecture_index.config import Settings
from lecture_index.models.recording import RecordingRecord
from lecture_index.services.crawl import runner
from lecture_index.services.crawl.base import PersistError, TransportError
from lecture_index.services.crawl.catalog import load_catalog, persist_catalog
from lecture_index.services.crawl.runner import CrawlDriver, CrawlState


BASE = "http://sections.test/echo360/sections/"
SECTION_IDS = [
    "0b6f2c1e-5a3d-4e8b-9c7a-2f1d0e9b8a76",
    "3c9a7e52-81f4-4b06-a2d5-6e4f3b1c0d98",
    "d41e08b7-6c2a-4f93-b5e1-9a8d7c6b5e43",
]


def read_fixture(name: str) -> str:
    p = Path(__file__).parent / "fixtures" / name
    return p.read_text(encoding="utf-8")


def section_xml(course_id: str, name: str, term: str) -> str:
    return (
        f"<section><course><name>{name}</name><identifier>{course_id}</identifier></course>"
        f"<term><name>{term}</name></term><portal><url>http://portal.test/{course_id}/{term}</url></portal></section>"
    )


class FakeSite:
    """In-memory sections server that records the order of requests."""

    def __init__(self, index_html: str, sections: dict):
        self.index_html = index_html
        self.sections = sections
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url == BASE:
            return httpx.Response(200, text=self.index_html)
        link_id = url[len(BASE):-len("/section.xml")]
        body = self.sections.get(link_id)
        if body is None:
            return httpx.Response(404, text="Not Found")
        return httpx.Response(200, text=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


def make_settings(tmp_path) -> Settings:
    return Settings(
        sections_url=BASE,
        handbook_url="https://handbook.test/view/2014/",
        catalog_path=str(tmp_path / "recordings.json"),
        report_path=str(tmp_path / "recordings.htm"),
    )


def full_site() -> FakeSite:
    return FakeSite(
        read_fixture("sections_index.html"),
        {
            SECTION_IDS[0]: section_xml("COMP10001", "Foundations of Computing", "Semester 2"),
            SECTION_IDS[1]: section_xml("MAST10006", "Calculus 2", "Semester 1"),
            SECTION_IDS[2]: section_xml("COMP10001", "Foundations of Computing", "Semester 1"),
        },
    )


def test_run_fetches_sequentially_then_persists_and_reports(tmp_path):
    site = full_site()
    settings = make_settings(tmp_path)
    with site.client() as client:
        driver = CrawlDriver(settings, client=client)
        result = driver.run()

    assert result["status"] == "completed"
    assert result["discovered"] == 3
    assert result["added"] == 3
    assert result["skipped"] == 0
    assert driver.state is CrawlState.IDLE
    assert site.requests == [BASE] + [f"{BASE}{link}/section.xml" for link in SECTION_IDS]

    catalog = load_catalog(settings.catalog_path)
    assert list(catalog) == SECTION_IDS
    assert catalog[SECTION_IDS[1]].name == "Calculus 2"

    html = Path(settings.report_path).read_text(encoding="utf-8")
    assert html.count("COMP10001 - Foundations of Computing") == 1
    assert html.index("COMP10001") < html.index("MAST10006")
    assert html.index(">Semester 1</a>") < html.index(">Semester 2</a>")


def test_run_only_fetches_links_not_yet_catalogued(tmp_path):
    settings = make_settings(tmp_path)
    known = RecordingRecord(id="MAST10006", name="Calculus 2", url="http://portal.test/old", term="Semester 1")
    persist_catalog({SECTION_IDS[1]: known}, settings.catalog_path)

    site = full_site()
    with site.client() as client:
        result = CrawlDriver(settings, client=client).run()

    assert result["added"] == 2
    assert f"{BASE}{SECTION_IDS[1]}/section.xml" not in site.requests
    catalog = load_catalog(settings.catalog_path)
    assert len(catalog) == 3
    assert catalog[SECTION_IDS[1]].url == "http://portal.test/old"


def test_second_run_finds_nothing_new(tmp_path):
    settings = make_settings(tmp_path)
    with full_site().client() as client:
        CrawlDriver(settings, client=client).run()

    site = full_site()
    report_mtime = Path(settings.report_path).stat().st_mtime_ns
    with site.client() as client:
        result = CrawlDriver(settings, client=client).run()
    assert result["status"] == "nothing_to_do"
    assert site.requests == [BASE]
    assert Path(settings.report_path).stat().st_mtime_ns == report_mtime


def test_nothing_to_do_writes_nothing(tmp_path, caplog):
    site = FakeSite('<table><tr><td><a href="/">Parent Directory</a></td></tr></table>', {})
    settings = make_settings(tmp_path)
    with caplog.at_level(logging.INFO), site.client() as client:
        result = CrawlDriver(settings, client=client).run()
    assert result["status"] == "nothing_to_do"
    assert not Path(settings.catalog_path).exists()
    assert not Path(settings.report_path).exists()
    assert "Failed to find any new recording links." in caplog.text


def test_bad_section_is_skipped_and_run_continues(tmp_path, caplog):
    site = full_site()
    site.sections[SECTION_IDS[0]] = "<section><course><name>broken</section>"
    del site.sections[SECTION_IDS[1]]  # 404
    settings = make_settings(tmp_path)
    with caplog.at_level(logging.WARNING), site.client() as client:
        result = CrawlDriver(settings, client=client).run()

    assert result["status"] == "completed"
    assert result["added"] == 1
    assert result["skipped"] == 2
    assert list(load_catalog(settings.catalog_path)) == [SECTION_IDS[2]]
    assert SECTION_IDS[0] in caplog.text
    assert SECTION_IDS[1] in caplog.text


def test_index_failure_is_fatal(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    settings = make_settings(tmp_path)
    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        driver = CrawlDriver(settings, client=client)
        with pytest.raises(TransportError):
            driver.run()
    assert driver.state is CrawlState.IDLE
    assert not Path(settings.catalog_path).exists()


def test_persist_failure_logs_catalog_before_raising(tmp_path, caplog):
    settings = make_settings(tmp_path)
    Path(settings.catalog_path).mkdir()
    with caplog.at_level(logging.ERROR), full_site().client() as client:
        with pytest.raises(PersistError) as exc_info:
            CrawlDriver(settings, client=client).run()

    payload = exc_info.value.payload
    assert set(json.loads(payload)) == set(SECTION_IDS)
    assert payload in caplog.text
    assert not Path(settings.report_path).exists()


def test_main_exits_nonzero_on_persist_failure(tmp_path, monkeypatch, caplog):
    site = full_site()
    catalog_path = tmp_path / "recordings.json"
    catalog_path.mkdir()
    monkeypatch.setenv("LECTURE_INDEX_SECTIONS_URL", BASE)
    client = site.client()
    monkeypatch.setattr(runner, "CrawlDriver", lambda settings: CrawlDriver(settings, client=client))

    with caplog.at_level(logging.ERROR):
        code = runner.main(["--catalog", str(catalog_path), "--report", str(tmp_path / "recordings.htm")])
    client.close()

    assert code == 1
    assert SECTION_IDS[0] in caplog.text


def test_main_completes_with_zero_exit(tmp_path, monkeypatch):
    site = full_site()
    monkeypatch.setenv("LECTURE_INDEX_SECTIONS_URL", BASE)
    client = site.client()
    monkeypatch.setattr(runner, "CrawlDriver", lambda settings: CrawlDriver(settings, client=client))

    code = runner.main(["--catalog", str(tmp_path / "recordings.json"), "--report", str(tmp_path / "recordings.htm")])
    client.close()

    assert code == 0
    assert (tmp_path / "recordings.htm").is_file()


def test_main_report_only_rebuilds_from_catalog(tmp_path):
    catalog_path = tmp_path / "recordings.json"
    report_path = tmp_path / "recordings.htm"
    rec = RecordingRecord(id="COMP10001", name="Foundations of Computing", url="http://portal.test/x", term="Semester 1")
    persist_catalog({SECTION_IDS[0]: rec}, str(catalog_path))

    code = runner.main(["--report-only", "--catalog", str(catalog_path), "--report", str(report_path)])

    assert code == 0
    assert "COMP10001 - Foundations of Computing" in report_path.read_text(encoding="utf-8")
