from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from .config_loader import inference_overrides, load_config, load_policies
from .providers.registry import ProviderRegistry
from .resilience.events import EventSink
from .resilience.resilient_provider import ResilientProvider
from .secrets.sources import SecretsResolver

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are an expert resume writer."


def build_provider(cfg: Dict[str, Any], *, events: Optional[EventSink] = None) -> ResilientProvider:
    """
    Build the configured adapter and wrap it with resilience policies read from
    the environment.
    """
    ProviderRegistry.ensure_imports()  # make sure built-ins register

    provider_name = cfg["model"]["provider"]
    model_name = cfg["model"]["name"]
    provider_cfg = dict((cfg.get("providers") or {}).get(provider_name) or {})

    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(
        method=secrets_cfg.get("method", "env"),
        mapping=secrets_cfg.get("mapping", {}),
    )

    params = dict(provider_cfg.get("params") or {})
    overrides = inference_overrides()
    if overrides:
        logger.debug("Inference overrides from environment: %s", overrides)
    params.update(overrides)

    inner = ProviderRegistry.create(
        provider_name,
        model_name=model_name,
        provider_cfg={**provider_cfg, "params": params},
        secrets=resolver,
    )

    retry, timeouts = load_policies()
    logger.debug("Resilience policies: %s %s", retry, timeouts)
    return ResilientProvider(inner, retry=retry, timeouts=timeouts, events=events)


def build_app(config_path: Path) -> Dict[str, Any]:
    """
    Composition root: load .env and YAML, build the provider (wrapped with resilience).
    Returns: dict with cfg, paths, provider, system_prompt.
    """
    load_dotenv()
    cfg = load_config(config_path)
    config_dir = config_path.resolve().parent

    provider = build_provider(cfg)

    prompts_cfg = cfg.get("prompts") or {}
    system_prompt = prompts_cfg.get("system") or DEFAULT_SYSTEM_PROMPT

    return {
        "cfg": cfg,
        "paths": {"config_dir": config_dir},
        "provider": provider,
        "system_prompt": system_prompt,
    }
