from __future__ import annotations

import json
import logging
import os
from typing import Iterable, Tuple

from pydantic import ValidationError

from lecture_index.models.recording import Catalog, RecordingRecord

from .base import CatalogError, PersistError

logger = logging.getLogger(__name__)


def ensure_dir(path: str) -> None:
    if path:
        os.makedirs(path, exist_ok=True)


def load_catalog(path: str) -> Catalog:
    """Read the persisted catalog, or return an empty one if none exists yet.

    A missing file is the normal first-run condition. A file that is present but
    unreadable raises CatalogError instead, so it is never overwritten by a
    fresh (and much smaller) catalog.
    """
    if not os.path.isfile(path):
        logger.info("No catalog at %s, starting empty", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        raise CatalogError(path, str(exc)) from exc
    if not isinstance(raw, dict):
        raise CatalogError(path, f"expected a JSON object, got {type(raw).__name__}")

    catalog: Catalog = {}
    for link_id, rec in raw.items():
        try:
            catalog[link_id] = RecordingRecord.model_validate(rec)
        except ValidationError as exc:
            raise CatalogError(path, f"invalid entry {link_id!r}: {exc}") from exc
    logger.debug("Loaded %d recordings from %s", len(catalog), path)
    return catalog


def serialize_catalog(catalog: Catalog) -> str:
    data = {link_id: rec.model_dump() for link_id, rec in catalog.items()}
    return json.dumps(data, ensure_ascii=False)


def persist_catalog(catalog: Catalog, path: str) -> str:
    """Overwrite the catalog file with the full mapping.

    Raises PersistError carrying the serialized payload when the write fails.
    Returns the path written.
    """
    payload = serialize_catalog(catalog)
    try:
        ensure_dir(os.path.dirname(path))
        with open(path, "w", encoding="utf-8") as f:
            f.write(payload)
    except OSError as exc:
        raise PersistError(path, payload, str(exc)) from exc
    return path


def merge_records(catalog: Catalog, records: Iterable[Tuple[str, RecordingRecord]]) -> int:
    """Insert (link_id, record) pairs whose key is not yet catalogued.

    Existing entries are never overwritten. Returns the number inserted.
    """
    added = 0
    for link_id, rec in records:
        if link_id in catalog:
            continue
        catalog[link_id] = rec
        added += 1
    return added

