import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

from event_exporter.errors import ConfigurationError

_ENV_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

DEFAULT_GENERAL_ENDPOINT = "https://mixpanel.com"
DEFAULT_EXPORT_ENDPOINT = "https://data.mixpanel.com"

DEFAULT_UNSCALED_EXPIRY_SECONDS = 60
DEFAULT_MAX_SCALED_EXPIRY_SECONDS = 180
DEFAULT_MIN_SCALED_EXPIRY_SECONDS = 30
DEFAULT_SECONDS_PER_DAY = 1.0
DEFAULT_TIMEOUT = 300


def expand_env_value(v: Any) -> Any:
    if isinstance(v, str):
        return _ENV_RE.sub(lambda m: os.getenv(m.group(1), m.group(0)), v)
    if isinstance(v, dict):
        return {k: expand_env_value(vv) for k, vv in v.items()}
    if isinstance(v, list):
        return [expand_env_value(x) for x in v]
    return v


@dataclass(frozen=True)
class Credentials:
    api_key: str
    api_secret: str = field(repr=False)


@dataclass(frozen=True)
class RunConfig:
    """Immutable run parameters, built once at startup."""

    output_root: str
    from_days_ago: int = 1
    to_days_ago: int = 0
    events_to_exclude: FrozenSet[str] = frozenset()
    events_to_include: FrozenSet[str] = frozenset()
    scale_expiry: bool = False
    seconds_per_day: float = DEFAULT_SECONDS_PER_DAY
    unscaled_expiry_seconds: int = DEFAULT_UNSCALED_EXPIRY_SECONDS
    max_scaled_expiry_seconds: int = DEFAULT_MAX_SCALED_EXPIRY_SECONDS
    min_scaled_expiry_seconds: int = DEFAULT_MIN_SCALED_EXPIRY_SECONDS
    subfolders_by_date: bool = True
    general_endpoint: str = DEFAULT_GENERAL_ENDPOINT
    export_endpoint: str = DEFAULT_EXPORT_ENDPOINT
    timeout: Optional[float] = DEFAULT_TIMEOUT
    verify: Any = True
    proxies: Tuple[Tuple[str, str], ...] = ()
    sep: str = ","
    log_directory: Optional[str] = None

    @property
    def window_days(self) -> int:
        return self.from_days_ago - self.to_days_ago

    def request_opts(self) -> Dict[str, Any]:
        return {
            "timeout": self.timeout,
            "verify": self.verify,
            "proxies": dict(self.proxies),
        }


def _non_negative_int(cfg: Dict[str, Any], key: str, default: int) -> int:
    raw = cfg.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise ConfigurationError(f"'{key}' must be an integer, got {raw!r}")
    try:
        value = int(raw)
    except (TypeError, ValueError, OverflowError) as e:
        raise ConfigurationError(
            f"'{key}' must be an integer, got {raw!r}"
        ) from e
    if value < 0:
        raise ConfigurationError(f"'{key}' must be non-negative, got {value}")
    return value


_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


def _flag(cfg: Dict[str, Any], key: str, default: bool) -> bool:
    # env expansion turns `${FLAG}` into a string
    raw = cfg.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ConfigurationError(f"'{key}' must be true or false, got {raw!r}")


def _event_set(cfg: Dict[str, Any], key: str) -> FrozenSet[str]:
    raw = cfg.get(key) or []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple, set)):
        raise ConfigurationError(f"'{key}' must be a list of event names")
    return frozenset(str(e) for e in raw)


def prepare_run_config(
    config: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None
) -> RunConfig:
    """Validate a loaded run-config document and freeze it into a RunConfig."""
    if not isinstance(config, dict):
        raise ConfigurationError("Run configuration must be a mapping.")
    cfg = expand_env_value(
        {**config, **{k: v for k, v in (overrides or {}).items() if v is not None}}
    )

    output_root = (cfg.get("output_directory") or "").strip()
    if not output_root:
        raise ConfigurationError("'output_directory' must be defined.")

    from_days_ago = _non_negative_int(cfg, "from_days_ago", 1)
    to_days_ago = _non_negative_int(cfg, "to_days_ago", 0)
    if to_days_ago > from_days_ago:
        raise ConfigurationError(
            f"'to_days_ago' ({to_days_ago}) must not exceed "
            f"'from_days_ago' ({from_days_ago})"
        )

    expiry_cfg = cfg.get("request_expiry") or {}
    unscaled = _non_negative_int(
        expiry_cfg, "unscaled_seconds", DEFAULT_UNSCALED_EXPIRY_SECONDS
    )
    max_scaled = _non_negative_int(
        expiry_cfg, "max_scaled_seconds", DEFAULT_MAX_SCALED_EXPIRY_SECONDS
    )
    min_scaled = _non_negative_int(
        expiry_cfg, "min_scaled_seconds", DEFAULT_MIN_SCALED_EXPIRY_SECONDS
    )
    if min_scaled > max_scaled:
        raise ConfigurationError(
            "request_expiry.min_scaled_seconds must not exceed max_scaled_seconds"
        )
    try:
        seconds_per_day = float(
            expiry_cfg.get("seconds_per_day", DEFAULT_SECONDS_PER_DAY)
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            "request_expiry.seconds_per_day must be a number"
        ) from e

    endpoints = cfg.get("endpoints") or {}
    req = cfg.get("request_defaults") or {}
    out = cfg.get("output") or {}

    return RunConfig(
        output_root=output_root,
        from_days_ago=from_days_ago,
        to_days_ago=to_days_ago,
        events_to_exclude=_event_set(cfg, "events_to_exclude"),
        events_to_include=_event_set(cfg, "events_to_include"),
        scale_expiry=_flag(expiry_cfg, "scale", False),
        seconds_per_day=seconds_per_day,
        unscaled_expiry_seconds=unscaled,
        max_scaled_expiry_seconds=max_scaled,
        min_scaled_expiry_seconds=min_scaled,
        subfolders_by_date=_flag(cfg, "subfolders_by_date", True),
        general_endpoint=endpoints.get("general") or DEFAULT_GENERAL_ENDPOINT,
        export_endpoint=endpoints.get("export") or DEFAULT_EXPORT_ENDPOINT,
        timeout=req.get("timeout", DEFAULT_TIMEOUT),
        verify=req.get("verify", True),
        proxies=tuple(sorted((req.get("proxies") or {}).items())),
        sep=out.get("sep", ","),
        log_directory=cfg.get("log_directory"),
    )


def prepare_credentials(credentials: Dict[str, Any]) -> Credentials:
    if not isinstance(credentials, dict):
        raise ConfigurationError("Credentials must be a mapping.")
    creds = expand_env_value(credentials)
    api_key = creds.get("api_key")
    api_secret = creds.get("api_secret")
    for name, value in (("api_key", api_key), ("api_secret", api_secret)):
        if not value or not isinstance(value, str) or _ENV_RE.search(value):
            raise ConfigurationError(
                f"Credentials must define a non-empty '{name}'."
            )
    return Credentials(api_key=api_key, api_secret=api_secret)
