import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, List, Mapping, NamedTuple, Optional

from event_exporter.errors import ParseError


@dataclass(frozen=True)
class EventRecord:
    event: str
    properties: Mapping[str, Any]


class ReconciledEvent(NamedTuple):
    records: List[EventRecord]
    header: List[str]


def parse_line(line: str, line_number: int) -> EventRecord:
    try:
        obj = json.loads(line)
    except ValueError as e:
        raise ParseError(
            f"Line {line_number} is not valid JSON: {e}", line_number
        ) from e
    if not isinstance(obj, dict):
        raise ParseError(
            f"Line {line_number} is not a JSON object", line_number
        )
    event = obj.get("event")
    if not isinstance(event, str):
        raise ParseError(
            f"Line {line_number} has no 'event' name", line_number
        )
    props = obj.get("properties")
    if props is None:
        props = {}
    if not isinstance(props, dict):
        raise ParseError(
            f"Line {line_number} has non-object 'properties'", line_number
        )
    return EventRecord(event, MappingProxyType(props))


def header_union(records: List[EventRecord]) -> List[str]:
    """Distinct property keys in order of first appearance."""
    seen = {}
    for rec in records:
        for key in rec.properties:
            seen.setdefault(key, None)
    return list(seen)


def reconcile(raw_body: Optional[str]) -> Optional[ReconciledEvent]:
    """
    Parse a newline-delimited export body.

    The body is one JSON object per line and is not itself a JSON document,
    so every line is decoded on its own. Trailing blank lines are ignored; any
    other bad line fails the whole body.
    """
    if not raw_body or not raw_body.strip():
        return None
    lines = raw_body.split("\n")
    while lines and not lines[-1].strip():
        lines.pop()
    records = [parse_line(line, n) for n, line in enumerate(lines, start=1)]
    return ReconciledEvent(records, header_union(records))
