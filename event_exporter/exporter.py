from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from event_exporter.config import RunConfig
from event_exporter.errors import ParseError, TransportError, WriteError
from event_exporter.output import emit, export_directory, export_filename
from event_exporter.parsing import reconcile
from event_exporter.request_helpers import log_exception
from event_exporter.service import EXPORT_RESOURCE, AnalyticsService


def select_events(
    catalog: Iterable[str],
    events_to_exclude: Iterable[str] = (),
    events_to_include: Iterable[str] = (),
) -> List[str]:
    """
    Events to export, in catalog order, each once.

    The exclude list wins: the include list is only consulted when nothing is
    excluded.
    """
    exclude = set(events_to_exclude or ())
    include = set(events_to_include or ())
    selected: List[str] = []
    for name in catalog:
        if name in selected:
            continue
        if exclude:
            if name in exclude:
                continue
        elif include and name not in include:
            continue
        selected.append(name)
    return selected


class EventExporter:
    """Lists the project's events and writes one CSV per event."""

    def __init__(
        self,
        config: RunConfig,
        service: AnalyticsService,
        log,
        run_date: Optional[date] = None,
    ):
        self.config = config
        self.service = service
        self.log = log
        self.run_date = run_date or date.today()

    @property
    def output_dir(self):
        return export_directory(
            self.config.output_root, self.run_date, self.config.subfolders_by_date
        )

    def destination_for(self, event: str):
        return self.output_dir / export_filename(event, self.run_date)

    # ------------ run ------------
    def run(self) -> Dict[str, Any]:
        started = pd.Timestamp.now(tz="UTC")
        self.log.info("[run] listing events")
        catalog = self.service.event_names()
        events = select_events(
            catalog, self.config.events_to_exclude, self.config.events_to_include
        )
        self.log.info(
            f"[run] catalog={len(catalog)} selected={len(events)} events={events}"
        )
        self.log.info(f"[run] sending output to {self.output_dir}")
        self.log.info(
            f"[run] date range from_days_ago={self.config.from_days_ago} "
            f"to_days_ago={self.config.to_days_ago}"
        )

        results = [self.export_event(event) for event in events]
        ended = pd.Timestamp.now(tz="UTC")

        def _count(status):
            return sum(1 for r in results if r["status"] == status)

        summary = {
            "run_date": self.run_date.isoformat(),
            "output_dir": str(self.output_dir),
            "from_days_ago": self.config.from_days_ago,
            "to_days_ago": self.config.to_days_ago,
            "catalog_size": len(catalog),
            "events": results,
            "written": _count("written"),
            "empty": _count("empty"),
            "failed": _count("failed"),
            "rows": sum(r["rows"] for r in results),
            "started_at": started.isoformat(),
            "ended_at": ended.isoformat(),
            "duration_s": float((ended - started).total_seconds()),
        }
        self.log.info(
            f"[run] done written={summary['written']} empty={summary['empty']} "
            f"failed={summary['failed']} rows={summary['rows']} "
            f"duration={summary['duration_s']:.3f}s"
        )
        return summary

    # ------------ export_event ------------
    def export_event(self, event: str) -> Dict[str, Any]:
        started = pd.Timestamp.now(tz="UTC")
        self.log.info(f"[event] '{event}' downloading")
        result: Dict[str, Any] = {
            "event": event,
            "status": "empty",
            "rows": 0,
            "columns": 0,
            "path": None,
            "error": None,
        }
        ctx = {"log": self.log}
        try:
            body = self.service.export(
                self.config.from_days_ago,
                self.config.to_days_ago,
                events=[event],
            )
            reconciled = reconcile(body)
            if reconciled is None or not reconciled.records:
                self.log.info(f"[event] '{event}' no data found")
            else:
                self.log.info(
                    f"[event] '{event}' retrieved {len(reconciled.records)} records"
                )
                path = emit(
                    event,
                    reconciled.records,
                    reconciled.header,
                    self.destination_for(event),
                    sep=self.config.sep,
                    log=self.log,
                )
                result.update(
                    status="written",
                    rows=len(reconciled.records),
                    columns=1 + len(reconciled.header),
                    path=str(path),
                )
        except TransportError as e:
            log_exception(ctx, e.url or EXPORT_RESOURCE, e, prefix=f"[event] '{event}' ")
            result.update(status="failed", error=str(e))
        except (ParseError, WriteError) as e:
            log_exception(ctx, EXPORT_RESOURCE, e, prefix=f"[event] '{event}' ")
            result.update(status="failed", error=str(e))

        ended = pd.Timestamp.now(tz="UTC")
        result["duration_s"] = float((ended - started).total_seconds())
        return result
