from __future__ import annotations
from importlib import import_module
from typing import Any, Callable, Dict, List, Protocol, Type

from tailor.core.ports import Provider

_BUILTIN_MODULES = (
    "tailor.providers.gemini_adapter",
    "tailor.providers.openai_adapter",
    "tailor.providers.echo",
)


class ProviderFactory(Protocol):
    @classmethod
    def create(cls, *, model_name: str, provider_cfg: Dict[str, Any], secrets) -> Provider: ...


class ProviderRegistry:
    """Name -> adapter class. Names are case-insensitive."""

    _classes: Dict[str, Type[ProviderFactory]] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[Type], Type]:
        key = name.lower()

        def deco(klass: Type) -> Type:
            cls._classes[key] = klass
            return klass
        return deco

    @classmethod
    def get(cls, name: str) -> Type[ProviderFactory]:
        try:
            return cls._classes[name.lower()]
        except KeyError:
            raise KeyError(
                f"Provider '{name}' not registered (known: {', '.join(cls.names()) or 'none'})"
            ) from None

    @classmethod
    def names(cls) -> List[str]:
        return sorted(cls._classes)

    @classmethod
    def create(cls, name: str, *, model_name: str, provider_cfg: Dict[str, Any], secrets) -> Provider:
        return cls.get(name).create(model_name=model_name, provider_cfg=provider_cfg, secrets=secrets)

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in adapters so their @register decorators run.
        Call once at bootstrap before get().
        """
        for module in _BUILTIN_MODULES:
            import_module(module)
