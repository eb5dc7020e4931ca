from typing import Any, Dict, NamedTuple, Optional
from urllib.parse import parse_qsl

import requests
from requests import Session

from event_exporter.errors import TransportError
from event_exporter.request_helpers import (
    api_url,
    build_session,
    log_request,
    redact_url,
)


class RawText(NamedTuple):
    """Body returned verbatim, used for the newline-delimited export stream."""

    url: str
    status_code: int
    text: str


class Parsed(NamedTuple):
    """Body decoded as a single JSON document (general query endpoint)."""

    url: str
    status_code: int
    value: Any


class Transport:
    """Performs signed GET requests against one API endpoint."""

    def __init__(
        self,
        endpoint: str,
        log,
        opts: Optional[Dict[str, Any]] = None,
        sess: Optional[Session] = None,
    ):
        self.endpoint = endpoint
        self.log = log
        self.opts = dict(opts or {})
        self.sess = sess if sess is not None else build_session(self.opts)

    def url_for(self, resource: str, query: str) -> str:
        url = api_url(self.endpoint, resource)
        return f"{url}?{query}" if query else url

    def _get(self, resource: str, query: str) -> requests.Response:
        url = self.url_for(resource, query)
        safe_url = redact_url(url)
        log_request(
            {"log": self.log},
            api_url(self.endpoint, resource),
            dict(parse_qsl(query)),
            prefix="[transport] ",
        )
        try:
            resp = self.sess.get(url, timeout=self.opts.get("timeout"))
        except requests.RequestException as e:
            raise TransportError(
                f"Request to {safe_url} failed: {e}", url=safe_url
            ) from e
        if not 200 <= resp.status_code < 300:
            raise TransportError(
                f"{resp.status_code} response from {safe_url}: {resp.text[:500]}",
                url=safe_url,
                status_code=resp.status_code,
            )
        return resp

    def get_raw(self, resource: str, query: str) -> RawText:
        resp = self._get(resource, query)
        text = resp.content.decode("utf-8", errors="replace")
        return RawText(redact_url(resp.url), resp.status_code, text)

    def get_parsed(self, resource: str, query: str) -> Parsed:
        resp = self._get(resource, query)
        safe_url = redact_url(resp.url)
        try:
            value = resp.json()
        except ValueError as e:
            raise TransportError(
                f"Could not parse JSON response from {safe_url}: {e}",
                url=safe_url,
                status_code=resp.status_code,
            ) from e
        return Parsed(safe_url, resp.status_code, value)
