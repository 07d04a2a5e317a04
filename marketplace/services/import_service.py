"""Bulk load / wipe of NFT seed data (used by ``scripts/import_data.py``)."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from marketplace.db.session import Database
from marketplace.domain.nfts import validate_nft
from marketplace.repositories.nft_repository import NFTRepository

log = logging.getLogger("marketplace.import")


@dataclass
class ImportReport:
    imported: int = 0
    skipped_existing: int = 0
    invalid: list[str] = field(default_factory=list)


def load_records(path: str | Path) -> list[dict[str, Any]]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of NFTs")
    return data


def deduplicate(records: Iterable[dict[str, Any]]) -> tuple[list[dict[str, Any]], list[str]]:
    """Keep the first valid record per name; return (clean records, error lines)."""
    unique: list[dict[str, Any]] = []
    errors: list[str] = []
    seen: set[str] = set()
    for index, record in enumerate(records):
        result = validate_nft(record)
        if not result.ok:
            errors.append(f"#{index} {record.get('name')!r}: {'. '.join(result.errors)}")
            continue
        name = result.value["name"]
        if name in seen:
            continue
        seen.add(name)
        unique.append(result.value)
    return unique, errors


def import_nfts(db: Database, records: Iterable[dict[str, Any]]) -> ImportReport:
    repo = NFTRepository(db)
    unique, errors = deduplicate(records)
    report = ImportReport(invalid=errors)
    for record in unique:
        if repo.get_by_name(record["name"]):
            report.skipped_existing += 1
            continue
        repo.create(record, creator_id=None)
        report.imported += 1
    log.info(
        "Import finished imported=%s existing=%s invalid=%s",
        report.imported,
        report.skipped_existing,
        len(report.invalid),
    )
    return report


def delete_nfts(db: Database) -> int:
    deleted = NFTRepository(db).delete_all()
    log.info("Deleted %s NFTs", deleted)
    return deleted
