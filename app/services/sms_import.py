# app/services/sms_import.py
#
# Parse exported SMS inboxes into scan items for sms_pipeline.scan_history.
#
# Supported exports:
#   csv   - columns sender|address, body, timestamp|date
#   jsonl - one {"sender"/"address", "body", "timestamp"/"date"} object per line
#
# Timestamps may be epoch milliseconds (Android content provider dumps) or
# date strings; anything unreadable becomes None and the pipeline falls back
# to the date inside the message.

from datetime import date, datetime
from typing import List, Optional

import numpy as np
import pandas as pd

from app.services.sms_pipeline import ScanItem

SENDER_COLUMNS = ("sender", "address", "from")
BODY_COLUMNS = ("body", "message", "text")
TIMESTAMP_COLUMNS = ("timestamp", "date", "date_sent")

SUPPORTED_FORMATS = ("csv", "jsonl")


def _pick_column(df: pd.DataFrame, candidates) -> Optional[str]:
    lower = {str(c).strip().lower(): c for c in df.columns}
    for name in candidates:
        if name in lower:
            return lower[name]
    return None


def parse_timestamp(value):
    """
    1704412800000 -> 1704412800000 (epoch ms, kept as int)
    '2024-01-05'  -> date(2024, 1, 5)
    """
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return None if np.isnan(value) else int(value)

    s = str(value).strip()
    if not s:
        return None
    if s.isdigit():
        return int(s)

    parsed = pd.to_datetime(s, errors="coerce", dayfirst=False)
    if pd.isna(parsed):
        return None
    return parsed.date()


def normalize_inbox(df: pd.DataFrame) -> List[ScanItem]:
    """
    Map an inbox DataFrame onto (sender, body, timestamp) scan items.
    Rows without a body are dropped.
    """
    body_col = _pick_column(df, BODY_COLUMNS)
    if body_col is None:
        raise ValueError("Inbox export has no body/message column")

    sender_col = _pick_column(df, SENDER_COLUMNS)
    ts_col = _pick_column(df, TIMESTAMP_COLUMNS)

    df = df.rename(columns={body_col: "body"})
    df = df[df["body"].notna()].copy()

    bodies = df["body"].astype(str).tolist()
    senders = df[sender_col].fillna("").astype(str).tolist() if sender_col else [""] * len(bodies)
    # parsed per value; a Series would coerce int|None to float
    stamps = [parse_timestamp(v) for v in df[ts_col].tolist()] if ts_col else [None] * len(bodies)

    return [
        ScanItem(sender=sender, body=body, timestamp=ts)
        for sender, body, ts in zip(senders, bodies, stamps)
    ]


def parse_csv_inbox(source) -> List[ScanItem]:
    # keep timestamps as text so epoch ms aren't turned into floats
    df = pd.read_csv(source, encoding="utf-8", dtype=str, keep_default_na=False, na_values=[""])
    return normalize_inbox(df)


def parse_jsonl_inbox(source) -> List[ScanItem]:
    df = pd.read_json(source, lines=True, dtype=False, convert_dates=False, keep_default_dates=False)
    return normalize_inbox(df)


def parse_inbox(source, fmt: str) -> List[ScanItem]:
    """
    Dispatch to the correct parser based on `fmt` ("csv" or "jsonl").
    """
    fmt_lower = (fmt or "").lower().lstrip(".")

    if fmt_lower == "csv":
        return parse_csv_inbox(source)
    elif fmt_lower in ("jsonl", "json", "ndjson"):
        return parse_jsonl_inbox(source)
    else:
        raise ValueError(f"Unsupported inbox format: {fmt!r} (expected one of {SUPPORTED_FORMATS})")
