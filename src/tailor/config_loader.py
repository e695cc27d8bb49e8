# src/tailor/config_loader.py

from __future__ import annotations
import math
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
import yaml

from tailor.resilience.policy import RetryPolicy, TimeoutPolicy

KNOWN_PROVIDERS = ("gemini", "openai", "echo")

# env var -> (field, default in ms or count)
RETRY_ENV = {
    "TAILOR_MAX_RETRIES": ("max_retries", 4),
    "TAILOR_BASE_DELAY_MS": ("base_delay", 1000),
    "TAILOR_MAX_DELAY_MS": ("max_delay", 30000),
}
TIMEOUT_ENV = {
    "TAILOR_CONNECTION_TIMEOUT_MS": ("connection_timeout", 15000),
    "TAILOR_REQUEST_TIMEOUT_MS": ("request_timeout", 120000),
    "TAILOR_FIRST_FRAGMENT_TIMEOUT_MS": ("first_fragment_timeout", 45000),
    "TAILOR_HEARTBEAT_INTERVAL_MS": ("heartbeat_interval", 10000),
}
INFERENCE_ENV = {
    "TAILOR_TEMPERATURE": ("temperature", float),
    "TAILOR_TOP_P": ("top_p", float),
    "TAILOR_TOP_K": ("top_k", int),
    "TAILOR_MAX_OUTPUT_TOKENS": ("max_output_tokens", int),
}


class ConfigError(ValueError):
    pass


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is bool and not isinstance(cur, bool):
        raise ConfigError(f"'{dotted}' must be a boolean")
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    return cur


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text())
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    # Validate required keys (no defaults here)
    _require(raw, "model.provider", str)
    _require(raw, "model.name", str)

    providers = raw.get("providers")
    if providers is not None and not isinstance(providers, dict):
        raise ConfigError("'providers' must be a mapping")

    # Normalise enumerations
    provider = str(raw["model"]["provider"]).lower()
    if provider not in KNOWN_PROVIDERS:
        raise ConfigError(f"Unknown model.provider '{provider}' (expected one of {', '.join(KNOWN_PROVIDERS)}).")
    raw["model"]["provider"] = provider
    return raw


def _env_number(environ: Mapping[str, str], key: str, cast) -> Optional[Any]:
    val = environ.get(key)
    if val is None or not val.strip():
        return None
    try:
        num = cast(val.strip())
    except ValueError:
        return None
    # "nan" and "inf" parse as floats but are never usable durations or params
    if isinstance(num, float) and not math.isfinite(num):
        return None
    return num


def _positive_ms(environ: Mapping[str, str], key: str, default: int) -> float:
    ms = _env_number(environ, key, float)
    if ms is None or ms <= 0:
        ms = default
    return ms / 1000.0


def load_policies(environ: Optional[Mapping[str, str]] = None) -> Tuple[RetryPolicy, TimeoutPolicy]:
    """
    Build resilience policies from TAILOR_* environment variables (milliseconds).
    Missing, unparseable, non-finite or non-positive values fall back to the defaults silently.
    """
    env = os.environ if environ is None else environ

    retries = _env_number(env, "TAILOR_MAX_RETRIES", int)
    if retries is None or retries < 0:
        retries = RETRY_ENV["TAILOR_MAX_RETRIES"][1]
    base = _positive_ms(env, "TAILOR_BASE_DELAY_MS", RETRY_ENV["TAILOR_BASE_DELAY_MS"][1])
    cap = _positive_ms(env, "TAILOR_MAX_DELAY_MS", RETRY_ENV["TAILOR_MAX_DELAY_MS"][1])
    retry = RetryPolicy(max_retries=retries, base_delay=base, max_delay=max(cap, base))

    timeouts = TimeoutPolicy(**{
        field: _positive_ms(env, key, default) for key, (field, default) in TIMEOUT_ENV.items()
    })
    return retry, timeouts


def inference_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """TAILOR_TEMPERATURE / TOP_P / TOP_K / MAX_OUTPUT_TOKENS; unparseable values are ignored."""
    env = os.environ if environ is None else environ
    out: Dict[str, Any] = {}
    for key, (name, cast) in INFERENCE_ENV.items():
        val = _env_number(env, key, cast)
        if val is not None:
            out[name] = val
    return out
