"""
This script heals transaction rows stored before the original_merchant column
existed.

Earlier versions kept only the display label, so renaming a merchant twice
lost the raw SMS token the merchant dictionary keys on. For rows where
original_merchant is missing, the script restores the raw token from the
user's merchant rules when exactly one rule produced the current label, and
copies the label otherwise. Rows that already have a raw token are left alone.

Purpose:
- Make relabeling and subscription grouping key on a stable token again
- Serve as a one-time / repeatable migration step (idempotent)
"""


from __future__ import annotations

import logging

from db import SessionLocal, engine, Base
from app.services.backfill import backfill_original_merchant


def run_backfill() -> dict:
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        counts = backfill_original_merchant(session)
        print(f"DONE. Defaulted: {counts['defaulted']}, restored from rules: {counts['restored']}")
        return counts
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_backfill()
