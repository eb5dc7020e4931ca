import hashlib
import math
import time
from typing import Any, Callable, Dict, Mapping
from urllib.parse import urlencode

from event_exporter.config import Credentials, RunConfig

RESERVED_PARAMS = ("api_key", "sig")


def param_str(value: Any) -> str:
    """Scalar-to-string rule shared by the digest and the query string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def compute_expiry_seconds(config: RunConfig, window_days: int) -> int:
    """Seconds a signed request stays valid for a query spanning window_days.

    With scaling enabled the validity grows with the span, clamped to
    [min_scaled_expiry_seconds, max_scaled_expiry_seconds].
    """
    if window_days < 0:
        raise ValueError(f"window_days must be non-negative, got {window_days}")
    if not config.scale_expiry:
        return int(config.unscaled_expiry_seconds)
    seconds = config.seconds_per_day * window_days
    seconds = max(seconds, config.min_scaled_expiry_seconds)
    seconds = min(seconds, config.max_scaled_expiry_seconds)
    return _round_half_up(seconds)


def expiry_timestamp(
    config: RunConfig, window_days: int, now: Callable[[], float] = time.time
) -> int:
    return int(now()) + compute_expiry_seconds(config, window_days)


def digest_signature(params: Mapping[str, Any], api_secret: str) -> str:
    # pairs are joined without '&' and ordered by key
    payload = "".join(
        f"{key}={param_str(params[key])}"
        for key in sorted(params)
        if key != "sig"
    )
    return hashlib.md5((payload + api_secret).encode("utf-8")).hexdigest()


class RequestSigner:
    """Adds api_key, expire and sig to a request's query parameters."""

    def __init__(
        self,
        credentials: Credentials,
        config: RunConfig,
        log,
        now: Callable[[], float] = time.time,
    ):
        self.credentials = credentials
        self.config = config
        self.log = log
        self.now = now

    def signed_params(
        self, resource: str, params: Mapping[str, Any], window_days: int = 0
    ) -> Dict[str, str]:
        for reserved in RESERVED_PARAMS:
            if reserved in params:
                raise ValueError(
                    f"'{reserved}' is added by the signer and must not be passed for {resource}"
                )
        signed: Dict[str, Any] = dict(params)
        if signed.get("expire") is None:
            signed["expire"] = expiry_timestamp(
                self.config, window_days, self.now
            )
            self.log.info(
                f"[sign] {resource} window_days={window_days} expire={signed['expire']}"
            )
        signed["api_key"] = self.credentials.api_key
        signed = {k: param_str(v) for k, v in signed.items()}
        signed["sig"] = digest_signature(signed, self.credentials.api_secret)
        return signed

    def sign(
        self, resource: str, params: Mapping[str, Any], window_days: int = 0
    ) -> str:
        return urlencode(self.signed_params(resource, params, window_days))
