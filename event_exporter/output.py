import json
import os
import re
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Sequence

import pandas as pd

from event_exporter.errors import WriteError
from event_exporter.parsing import EventRecord

TIME_PROPERTY = "time"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"

_WHITESPACE_RE = re.compile(r"\s+")
_PATH_SEP_RE = re.compile(r"[\\/]")


def camelize(event_name: str) -> str:
    """'survey_completed' -> 'SurveyCompleted'; other text is left as is."""
    head, *rest = event_name.split("_")
    return head[:1].upper() + head[1:] + "".join(
        p[:1].upper() + p[1:] for p in rest
    )


def export_filename(event_name: str, run_date: date, ext: str = "csv") -> str:
    """
    'Survey Completed' on 2016-07-12 -> 'SurveyCompleted.2016-07-12.csv'.
    """
    name = _WHITESPACE_RE.sub("", camelize(event_name))
    name = _PATH_SEP_RE.sub("-", name)
    return f"{name}.{run_date.strftime(DATE_FORMAT)}.{ext}"


def export_directory(
    output_root: str, run_date: date, subfolders_by_date: bool = True
) -> Path:
    root = Path(output_root).expanduser()
    if subfolders_by_date:
        root = root / run_date.strftime(DATE_FORMAT)
    return root.resolve()


def format_event_time(value: Any) -> str:
    """Epoch seconds -> local 'YYYY-MM-DD HH:MM:SS'."""
    if value is None or isinstance(value, bool):
        return render_value(value)
    try:
        seconds = int(float(value))
        stamp = datetime.fromtimestamp(seconds)
    except (TypeError, ValueError, OverflowError, OSError):
        # not a number, or outside the platform's datetime range
        return render_value(value)
    return stamp.strftime(TIMESTAMP_FORMAT)


def render_value(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (dict, list)):
        return json.dumps(v, default=str, ensure_ascii=False)
    return str(v)


def render_cell(record: EventRecord, column: str) -> str:
    if column not in record.properties:
        return ""
    value = record.properties[column]
    if column == TIME_PROPERTY:
        return format_event_time(value)
    return render_value(value)


def build_frame(records: Sequence[EventRecord], header: List[str]) -> pd.DataFrame:
    rows = [
        [rec.event] + [render_cell(rec, col) for col in header]
        for rec in records
    ]
    return pd.DataFrame(rows, columns=["event"] + list(header), dtype=object)


def emit(
    event_name: str,
    records: Sequence[EventRecord],
    header: List[str],
    destination: Path,
    sep: str = ",",
    log=None,
) -> Path:
    """
    Write one event's records to destination, all or nothing.

    Rows go to a temporary file beside the destination which is moved over it
    only once every row has been written.
    """
    destination = Path(destination)
    df = build_frame(records, header)
    tmp_name = None
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            newline="",
            dir=destination.parent,
            prefix=f".{destination.name}.",
            suffix=".tmp",
            delete=False,
        ) as fh:
            tmp_name = fh.name
            df.to_csv(fh, index=False, sep=sep, lineterminator="\n")
        os.replace(tmp_name, destination)
    except (OSError, UnicodeError) as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise WriteError(
            f"Could not write {len(df)} rows for '{event_name}' to {destination}: {e}"
        ) from e
    if log is not None:
        log.info(
            f"[output] Wrote {len(df)} rows ({len(df.columns)} columns) for '{event_name}' to {destination}"
        )
    return destination
