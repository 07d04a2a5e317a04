#!/usr/bin/env python3
"""
Load or wipe NFT seed data.

Usage:
  python scripts/import_data.py --import [--file data/nfts-sample.json]
  python scripts/import_data.py --delete
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from marketplace.core.config import get_settings
from marketplace.core.log import configure_logging
from marketplace.db.session import Database
from marketplace.services.import_service import delete_nfts, import_nfts, load_records

DEFAULT_FILE = Path(__file__).resolve().parent.parent / "data" / "nfts-sample.json"

log = logging.getLogger("marketplace.import")


def main() -> None:
    ap = argparse.ArgumentParser(description="Import or delete NFT seed data")
    action = ap.add_mutually_exclusive_group(required=True)
    action.add_argument("--import", dest="do_import", action="store_true", help="Insert NFTs missing from the database")
    action.add_argument("--delete", dest="do_delete", action="store_true", help="Delete every NFT")
    ap.add_argument("--file", default=str(DEFAULT_FILE), help="JSON array of NFTs")
    args = ap.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)
    db = Database(settings.database_url)
    try:
        db.create_all()
        if args.do_delete:
            delete_nfts(db)
            print("DATA successfully deleted!")
            return
        report = import_nfts(db, load_records(args.file))
        for line in report.invalid:
            log.warning("Skipped invalid NFT %s", line)
        if report.imported == 0:
            print("No new NFTs to import.")
        else:
            print(f"DATA successfully loaded! ({report.imported} NFTs)")
    finally:
        db.dispose()


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover - CLI
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
