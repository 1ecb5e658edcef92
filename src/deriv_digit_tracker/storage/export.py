"""Minute history export.

JSON keeps the snapshot order (newest first, as displayed) and round-trips
minute keys, totals and all ten counts exactly. CSV is written oldest first
with a count and percentage column per digit.
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Sequence

from deriv_digit_tracker.ingestor.models import DIGITS, MinuteRow

EXPORT_FORMAT_VERSION = 1


def oldest_first(rows: Iterable[MinuteRow]) -> list[MinuteRow]:
    return sorted(rows, key=lambda r: r.minute)


def history_to_json(rows: Sequence[MinuteRow], *, symbol: str = "") -> str:
    """Serialize a minute history snapshot to JSON."""
    payload = {
        "version": EXPORT_FORMAT_VERSION,
        "symbol": symbol,
        "minutes": [
            {
                **row.to_dict(),
                "percentages": [round(p, 4) for p in row.percentages],
            }
            for row in rows
        ],
    }
    return json.dumps(payload)


def history_from_json(text: str) -> list[MinuteRow]:
    """Parse JSON produced by ``history_to_json``.

    Raises:
        ValueError: If the document is not a minute history export.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid minute history JSON: {e}") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("minutes"), list):
        raise ValueError("Minute history JSON must contain a 'minutes' list")
    try:
        return [MinuteRow.from_dict(item) for item in payload["minutes"]]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed minute entry: {e}") from e


def csv_header() -> list[str]:
    header = ["minute", "total"]
    for d in range(DIGITS):
        header += [f"d{d}_count", f"d{d}_pct"]
    return header


def history_to_csv(rows: Iterable[MinuteRow]) -> str:
    """Serialize a minute history to CSV, oldest minute first."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(csv_header())
    for row in oldest_first(rows):
        record: list[object] = [row.minute_label, row.total]
        for count, pct in zip(row.counts, row.percentages, strict=True):
            record += [count, f"{pct:.2f}"]
        writer.writerow(record)
    return buf.getvalue()
