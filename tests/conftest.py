"""Shared fixtures: in-memory stand-ins for Playwright pages and element handles."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest
from playwright.async_api import Error as PlaywrightError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from job_assistant.cache import AnalysisCache  # noqa: E402
from job_assistant.storage import JsonStore  # noqa: E402


class FakeElement:
    """Element handle whose sub-elements are looked up by exact selector string."""

    def __init__(
        self,
        text: str = "",
        *,
        html: str | None = None,
        attrs: dict[str, str] | None = None,
        children: dict[str, list["FakeElement"]] | None = None,
        visible: bool = True,
        disabled: bool = False,
        detached: bool = False,
        on_click: Callable[["FakeElement"], None] | None = None,
    ) -> None:
        self.text = text
        self.html = html if html is not None else f"<p>{text}</p>"
        self.attrs = dict(attrs or {})
        self.children = {k: list(v) for k, v in (children or {}).items()}
        self.visible = visible
        self.disabled = disabled
        self.detached = detached
        self.on_click = on_click
        self.clicks = 0
        self.scrolls = 0
        self.evaluated: list[tuple[str, Any]] = []

    def _check(self) -> None:
        if self.detached:
            raise PlaywrightError("Element is not attached to the DOM")

    async def query_selector(self, selector: str) -> "FakeElement | None":
        self._check()
        found = self.children.get(selector) or []
        return found[0] if found else None

    async def query_selector_all(self, selector: str) -> list["FakeElement"]:
        self._check()
        return list(self.children.get(selector) or [])

    async def get_attribute(self, name: str) -> str | None:
        self._check()
        return self.attrs.get(name)

    async def inner_text(self) -> str:
        self._check()
        return self.text

    async def inner_html(self) -> str:
        self._check()
        return self.html

    async def click(self) -> None:
        self._check()
        self.clicks += 1
        if self.on_click is not None:
            self.on_click(self)

    async def scroll_into_view_if_needed(self) -> None:
        self._check()
        self.scrolls += 1

    async def is_visible(self) -> bool:
        self._check()
        return self.visible

    async def is_disabled(self) -> bool:
        self._check()
        return self.disabled

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self._check()
        self.evaluated.append((script, arg))
        return True

    def locator(self, selector: str) -> "FakeLocator":
        return FakeLocator(self, (selector,))


class FakeLocator:
    """Lazy query like Playwright's Locator: resolved against the tree on every call."""

    def __init__(self, root: FakeElement, chain: tuple[str, ...], index: int | None = None) -> None:
        self.root = root
        self.chain = chain
        self.index = index

    def _resolve(self) -> list[FakeElement]:
        current = [self.root]
        for selector in self.chain:
            found = []
            for element in current:
                element._check()
                found.extend(element.children.get(selector) or [])
            current = found
        if self.index is None:
            return current
        return current[self.index:self.index + 1]

    def _one(self) -> FakeElement:
        matches = self._resolve()
        if not matches:
            raise PlaywrightError(f"Timeout waiting for locator {' >> '.join(self.chain)}")
        return matches[0]

    def locator(self, selector: str) -> "FakeLocator":
        return FakeLocator(self.root, self.chain + (selector,))

    @property
    def first(self) -> "FakeLocator":
        return self.nth(0)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.root, self.chain, index)

    async def count(self) -> int:
        return len(self._resolve())

    async def inner_text(self) -> str:
        return await self._one().inner_text()

    async def inner_html(self) -> str:
        return await self._one().inner_html()

    async def click(self) -> None:
        await self._one().click()

    async def scroll_into_view_if_needed(self) -> None:
        await self._one().scroll_into_view_if_needed()

    async def is_visible(self) -> bool:
        matches = self._resolve()
        return bool(matches) and await matches[0].is_visible()

    async def is_disabled(self) -> bool:
        return await self._one().is_disabled()


class FakeFrame:
    def __init__(self, url: str) -> None:
        self.url = url


class FakePage(FakeElement):
    def __init__(self, url: str = "https://www.linkedin.com/jobs/search/", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.main_frame = FakeFrame(url)
        self.bindings: dict[str, Callable] = {}
        self.handlers: dict[str, list[Callable]] = {}
        self.evaluate_result: Any = True

    @property
    def url(self) -> str:
        return self.main_frame.url

    async def expose_binding(self, name: str, callback: Callable) -> None:
        if name in self.bindings:
            raise PlaywrightError(f'Function "{name}" has been already registered')
        self.bindings[name] = callback

    def on(self, event: str, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def navigate(self, url: str) -> None:
        self.main_frame.url = url
        for handler in self.handlers.get("framenavigated", []):
            handler(self.main_frame)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluated.append((script, arg))
        return self.evaluate_result


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def stores(tmp_path):
    return JsonStore(tmp_path / "storage.json"), JsonStore(tmp_path / "entries.json")


@pytest.fixture
def cache(stores) -> AnalysisCache:
    return AnalysisCache(*stores)
