import traceback
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from requests import Session

_SENSITIVE_PARAMS = {
    "api_key",
    "api_secret",
    "sig",
    "secret",
    "access_token",
    "token",
    "password",
}

API_VERSION_PATH = "/api/2.0"


def build_url(base_url: str, path: str) -> str:
    return urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))


def api_url(endpoint: str, resource: str) -> str:
    """'https://data.mixpanel.com' + '/export' -> '.../api/2.0/export'."""
    return build_url(endpoint, f"{API_VERSION_PATH}/{resource.lstrip('/')}")


def build_session(opts: Optional[Dict[str, Any]] = None) -> Session:
    s = Session()
    apply_session_defaults(s, opts or {})
    return s


def apply_session_defaults(sess: Session, opts: Dict[str, Any]) -> None:
    if opts.get("headers"):
        sess.headers.update(opts["headers"])
    if opts.get("proxies"):
        sess.proxies.update(opts["proxies"])
    if "verify" in opts:
        sess.verify = opts["verify"]


def redact_params(params: Dict[str, Any]) -> Dict[str, Any]:
    safe = dict(params or {})
    for k in list(safe):
        if k.lower() in _SENSITIVE_PARAMS:
            safe[k] = "***REDACTED***"
    return safe


def redact_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url
    safe = redact_params(dict(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit(parts._replace(query=urlencode(safe, safe="*")))


def log_request(
    ctx: Dict[str, Any], url: str, params: Dict[str, Any], prefix: str = ""
):
    ctx["log"].info(f"{prefix}GET {url} params={redact_params(params)}")


def log_exception(
    ctx: Dict[str, Any], url: str, e: Exception, prefix: str = ""
):
    ctx["log"].error(
        f"{prefix}Error retrieving data from {redact_url(url)}: {e}\nStack Trace: {traceback.format_exc()}"
    )
