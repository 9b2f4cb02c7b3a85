"""Adapter factory (origin pattern → class) and per-page adapter registry."""
from __future__ import annotations

from typing import Any, Type

from job_assistant.log import get_logger
from job_assistant.sites.base import SiteAdapter

log = get_logger(__name__)

_ADAPTERS: list[Type[SiteAdapter]] = []


def register_adapter(cls: Type[SiteAdapter]) -> Type[SiteAdapter]:
    """Class decorator: make a layout available to the factory."""
    if cls not in _ADAPTERS:
        _ADAPTERS.append(cls)
        log.debug("Registered adapter: %s", cls.name)
    return cls


def registered_adapters() -> list[Type[SiteAdapter]]:
    return list(_ADAPTERS)


def adapter_class_for(url: str) -> Type[SiteAdapter] | None:
    for cls in _ADAPTERS:
        if cls.detect_site(url):
            return cls
    return None


class AdapterRegistry:
    """At most one adapter per page; repeated attach calls return the same one."""

    def __init__(self) -> None:
        self._instances: dict[Any, SiteAdapter] = {}

    def __contains__(self, page: Any) -> bool:
        return page in self._instances

    def get(self, page: Any) -> SiteAdapter | None:
        return self._instances.get(page)

    async def get_or_create(self, page: Any) -> SiteAdapter | None:
        adapter = self._instances.get(page)
        if adapter is not None:
            log.debug("Adapter already attached to %s", page.url)
            return adapter
        cls = adapter_class_for(page.url)
        if cls is None:
            log.info("No adapter available for %s", page.url)
            return None
        log.info("Creating %s adapter", cls.name)
        adapter = cls(page)
        self._instances[page] = adapter
        await adapter.init()
        return adapter

    async def release(self, page: Any) -> None:
        adapter = self._instances.pop(page, None)
        if adapter is not None:
            await adapter.close()
