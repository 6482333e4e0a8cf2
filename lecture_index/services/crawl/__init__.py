"""Lecture recording crawler.

Structure:
- base.py: error types and the spider base class (shared HTTP GET)
- catalog.py: load/merge/persist of the recordings catalog (JSON)
- spiders/: sections index discovery and per-section XML metadata
- runner.py: sequential crawl driver and CLI entrypoint

Uses httpx for transport, selectolax for the index page and ElementTree for
the section XML.
"""
