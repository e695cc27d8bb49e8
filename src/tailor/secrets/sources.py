# src/tailor/secrets/sources.py

from __future__ import annotations
import getpass
import logging
import os
import subprocess
import sys
from typing import Dict, Iterable, List, Optional, Protocol, Union

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)


class MissingSecretError(LookupError):
    """No configured source could supply a provider's API key."""

    def __init__(self, provider: str, service: str, methods: List[str]):
        super().__init__(
            f"No API key for '{provider}': set {_env_names(service)[0]} "
            f"(looked in: {', '.join(methods)})"
        )
        self.provider = provider
        self.service = service


def _env_names(service: str) -> List[str]:
    # mapping may name an env var directly ("GEMINI_API_KEY") or a service ("gemini")
    if service.isupper():
        return [service]
    return [f"{service.upper()}_API_KEY", service.upper(), service]


class SecretSource(Protocol):
    name: str

    def get(self, service: str) -> Optional[str]: ...


class EnvSource:
    name = "env"

    def get(self, service: str) -> Optional[str]:
        for key in _env_names(service):
            val = (os.getenv(key) or "").strip()
            if val:
                return val
        return None


class SystemKeyringSource:
    """
    Looks the service up in the OS keyring, then (macOS only) the `security` CLI.
    Backend failures count as "not found" so the next source gets a turn.
    """
    name = "keyring"

    def _accounts(self, service: str) -> List[str]:
        return [f"{service.upper()}_API_KEY", "API_KEY", "default", service, getpass.getuser()]

    def _from_keyring(self, service: str) -> Optional[str]:
        try:
            cred = keyring.get_credential(service, None)
            if cred is not None and cred.password:
                return cred.password.strip()
            for account in self._accounts(service):
                val = keyring.get_password(service, account)
                if val:
                    return val.strip()
        except KeyringError as e:
            logger.debug("keyring lookup for %s failed: %s", service, e)
        return None

    def _from_security_cli(self, service: str) -> Optional[str]:
        try:
            p = subprocess.run(
                ["security", "find-generic-password", "-s", service, "-w"],
                capture_output=True, text=True, check=False,
            )
        except OSError:
            return None
        out = p.stdout.strip()
        return out if p.returncode == 0 and out else None

    def get(self, service: str) -> Optional[str]:
        val = self._from_keyring(service)
        if val is None and sys.platform == "darwin":
            val = self._from_security_cli(service)
        return val


_SOURCES = {"env": EnvSource, "keyring": SystemKeyringSource}


def _normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    methods = [method] if isinstance(method, str) else list(method)
    norm: List[str] = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in _SOURCES:
            raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(_SOURCES)}")
        if key not in norm:
            norm.append(key)
    return norm


def build_secret_sources(method: Union[str, Iterable[str]]) -> List[SecretSource]:
    return [_SOURCES[name]() for name in _normalise_methods(method)]


class SecretsResolver:
    """
    Resolve provider API keys by trying each configured method in order.
    mapping: provider -> {name: service or env var}
      e.g. {"gemini": {"api_key": "GEMINI_API_KEY"}} or {"openai": {"api_key": "openai"}}
    """

    def __init__(self, method: Union[str, Iterable[str]] = "env",
                 mapping: Dict[str, Dict[str, str]] | None = None):
        self._sources = build_secret_sources(method)
        self._map = mapping or {}

    def _service(self, provider: str, name: str) -> str:
        return (self._map.get(provider) or {}).get(name, provider)

    def secret(self, provider: str, name: str = "api_key") -> Optional[str]:
        service = self._service(provider, name)
        for src in self._sources:
            val = src.get(service)
            if val:
                logger.debug("%s %s resolved from %s", provider, name, src.name)
                return val
        return None

    def require(self, provider: str, name: str = "api_key") -> str:
        val = self.secret(provider, name)
        if not val:
            raise MissingSecretError(provider, self._service(provider, name),
                                     [s.name for s in self._sources])
        return val
