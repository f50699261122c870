"""服务商注册表、别名归一化和能力表"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional

from ...core.config import settings
from ...core.exceptions import ConfigurationError
from .base import ASYNC, SYNC, ProviderAdapter


PROVIDER_ALIASES: Dict[str, str] = {
    "kie": "kie",
    "kie-ai": "kie",
    "kieai": "kie",
    "nano-banana": "kie",
    "google-nano-banana-edit": "kie",
    "gemini": "gemini",
    "google": "gemini",
    "gemini-2-5-flash-image": "gemini",
    "openai": "openai",
    "gpt-image": "openai",
    "gpt-image-1": "openai",
}


@dataclass(frozen=True)
class ProviderCapabilities:
    name: str
    protocol: str
    requires_public_url: bool
    key_setting: str


_CAPABILITIES: Dict[str, ProviderCapabilities] = {
    "kie": ProviderCapabilities(name="kie", protocol=ASYNC, requires_public_url=True, key_setting="KIEAI_API_KEY"),
    "gemini": ProviderCapabilities(name="gemini", protocol=SYNC, requires_public_url=False, key_setting="GEMINI_API_KEY"),
    "openai": ProviderCapabilities(name="openai", protocol=SYNC, requires_public_url=False, key_setting="OPENAI_API_KEY"),
}

_ADAPTERS: Dict[str, ProviderAdapter] = {}


def normalize_provider(provider: Optional[str]) -> str:
    if not provider:
        return normalize_provider(settings.RESTAGE_PROVIDER)
    slug = re.sub(r"[^a-z0-9]+", "-", provider.strip().lower()).strip("-")
    return PROVIDER_ALIASES.get(slug, slug)


def get_capabilities(provider: Optional[str]) -> ProviderCapabilities:
    key = normalize_provider(provider)
    if key not in _CAPABILITIES:
        raise ConfigurationError(f"Unknown provider '{provider}'", setting="RESTAGE_PROVIDER")
    return _CAPABILITIES[key]


def _build_adapter(provider: str) -> ProviderAdapter:
    if provider == "kie":
        from .kie import KieAdapter
        return KieAdapter()
    if provider == "gemini":
        from .gemini import GeminiAdapter
        return GeminiAdapter()
    if provider == "openai":
        from .openai import OpenAIAdapter
        return OpenAIAdapter()
    raise ConfigurationError(f"No adapter registered for provider '{provider}'", setting="RESTAGE_PROVIDER")


def get_adapter(provider: Optional[str] = None) -> ProviderAdapter:
    """返回服务商适配器；对应密钥未配置时直接抛出 ConfigurationError"""
    capabilities = get_capabilities(provider)
    settings.require(capabilities.key_setting)
    adapter = _ADAPTERS.get(capabilities.name)
    if adapter is None:
        adapter = _build_adapter(capabilities.name)
        _ADAPTERS[capabilities.name] = adapter
    return adapter
