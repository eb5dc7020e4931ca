import json
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from event_exporter.config import Credentials, RunConfig
from event_exporter.errors import TransportError
from event_exporter.signing import RequestSigner
from event_exporter.transport import Transport

EVENT_NAMES_RESOURCE = "/events/names"
EXPORT_RESOURCE = "/export"
DATE_FORMAT = "%Y-%m-%d"


def date_token(days_ago: int, today: Optional[date] = None) -> str:
    """Calendar date N days before today; the API has no sub-day granularity."""
    today = today or date.today()
    return (today - timedelta(days=days_ago)).strftime(DATE_FORMAT)


def build_export_request(
    from_days_ago: int,
    to_days_ago: int,
    event_filter: Optional[Sequence[str]] = None,
    today: Optional[date] = None,
) -> Tuple[str, Dict[str, Any]]:
    """Return (resource, params) for an export over [from_days_ago, to_days_ago].

    The remote key is 'event' even when several events are listed; its value
    is a JSON array string.
    """
    if from_days_ago < 0 or to_days_ago < 0:
        raise ValueError("days ago must be non-negative")
    if to_days_ago > from_days_ago:
        raise ValueError(
            f"to_days_ago ({to_days_ago}) must not exceed from_days_ago ({from_days_ago})"
        )
    today = today or date.today()
    params: Dict[str, Any] = {
        "from_date": date_token(from_days_ago, today),
        "to_date": date_token(to_days_ago, today),
    }
    if event_filter:
        params["event"] = json.dumps(list(event_filter), ensure_ascii=False)
    return EXPORT_RESOURCE, params


class AnalyticsService:
    """Signed access to the general query and bulk export endpoints."""

    def __init__(
        self,
        credentials: Credentials,
        config: RunConfig,
        log,
        signer: Optional[RequestSigner] = None,
        general: Optional[Transport] = None,
        export: Optional[Transport] = None,
    ):
        self.config = config
        self.log = log
        self.signer = signer or RequestSigner(credentials, config, log)
        opts = config.request_opts()
        self.general = general or Transport(config.general_endpoint, log, opts)
        self.export_transport = export or Transport(
            config.export_endpoint, log, opts
        )

    def event_names(self) -> List[str]:
        """All event names the project knows of (the API caps this at 255)."""
        query = self.signer.sign(EVENT_NAMES_RESOURCE, {"type": "general"})
        result = self.general.get_parsed(EVENT_NAMES_RESOURCE, query)
        names = result.value
        if not isinstance(names, list) or not all(
            isinstance(n, str) for n in names
        ):
            raise TransportError(
                f"Unexpected event name listing from {result.url}: {str(names)[:200]}",
                url=result.url,
                status_code=result.status_code,
            )
        return names

    def export(
        self,
        from_days_ago: int,
        to_days_ago: int,
        events: Optional[Sequence[str]] = None,
        today: Optional[date] = None,
    ) -> Optional[str]:
        """Raw newline-delimited export body, or None when there is no data."""
        resource, params = build_export_request(
            from_days_ago, to_days_ago, events, today
        )
        self.log.info(f"[export] requesting {resource} with {params}")
        query = self.signer.sign(
            resource, params, window_days=from_days_ago - to_days_ago
        )
        body = self.export_transport.get_raw(resource, query).text
        if not body or not body.strip():
            return None
        return body
