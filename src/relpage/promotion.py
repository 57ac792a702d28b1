"""Seed the single-record cache from settled page fetches."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from relpage.records import RecordCache
from relpage.types import Page

logger = logging.getLogger(__name__)

MAX_RECORDS_TO_PROMOTE = 100


async def promote_pages(
    records: RecordCache,
    resource: str,
    pages: Sequence[Page],
    *,
    meta: Any = None,
    limit: int = MAX_RECORDS_TO_PROMOTE,
) -> int:
    """Copy every record of ``pages`` into ``records``, never overwriting.

    Nothing is written when the pages hold more than ``limit`` records in
    total. Records without an ``id`` are skipped. Returns the number of
    records actually written.
    """
    count = sum(len(page.records) for page in pages)
    if count > limit:
        logger.debug(
            "Skipping promotion of %d %s records (limit %d)", count, resource, limit
        )
        return 0

    written = 0
    for page in pages:
        for record in page.records:
            if record.get("id") is None:
                continue
            if await records.promote(resource, record, meta):
                written += 1

    logger.debug("Promoted %d/%d %s records", written, count, resource)
    return written


__all__ = ["MAX_RECORDS_TO_PROMOTE", "promote_pages"]
