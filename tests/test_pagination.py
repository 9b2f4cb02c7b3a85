"""Tests for locating and pressing the next-page control."""
import pytest
from conftest import FakeElement, FakePage

from job_assistant.pagination import NextPageStrategy, PaginationCrawler, is_usable

STRATEGIES = (
    NextPageStrategy("button.next", container=".footer"),
    NextPageStrategy("button.next"),
)


def crawler(page):
    return PaginationCrawler(page, STRATEGIES, scroll_delay=0, settle_delay=0)


async def press(control):
    await control.click()


@pytest.mark.asyncio
async def test_container_strategy_is_preferred():
    in_footer = FakeElement("Next")
    page_wide = FakeElement("Next")
    page = FakePage(children={
        ".footer": [FakeElement(children={"button.next": [in_footer]})],
        "button.next": [page_wide],
    })
    await press(await crawler(page).find_next())
    assert (in_footer.clicks, page_wide.clicks) == (1, 0)


@pytest.mark.asyncio
async def test_disabled_control_falls_through():
    disabled = FakeElement("Next", disabled=True)
    enabled = FakeElement("Next")
    page = FakePage(children={
        ".footer": [FakeElement(children={"button.next": [disabled]})],
        "button.next": [enabled],
    })
    await press(await crawler(page).find_next())
    assert (disabled.clicks, enabled.clicks) == (0, 1)


@pytest.mark.asyncio
async def test_text_fallback():
    previous = FakeElement("Previous")
    hidden = FakeElement("Next", visible=False)
    target = FakeElement("  Next  ")
    page = FakePage(children={"button": [previous, hidden, target]})
    await press(await crawler(page).find_next())
    assert [b.clicks for b in (previous, hidden, target)] == [0, 0, 1]


@pytest.mark.asyncio
async def test_detached_container_is_skipped():
    enabled = FakeElement("Next")
    page = FakePage(children={
        ".footer": [FakeElement(detached=True)],
        "button.next": [enabled],
    })
    await press(await crawler(page).find_next())
    assert enabled.clicks == 1


@pytest.mark.asyncio
async def test_advance_clicks_next():
    button = FakeElement("Next")
    page = FakePage(children={"button.next": [button]})
    assert await crawler(page).advance() is True
    assert button.clicks == 1
    assert button.scrolls == 1


@pytest.mark.asyncio
async def test_no_next_page():
    assert await crawler(FakePage()).advance() is False


@pytest.mark.asyncio
async def test_control_detached_before_click():
    button = FakeElement("Next")
    page = FakePage(children={"button.next": [button]})
    c = crawler(page)
    assert await c.find_next() is not None
    button.detached = True
    assert await c.advance() is False
    assert button.clicks == 0


@pytest.mark.asyncio
async def test_missing_control_is_unusable():
    assert await is_usable(None) is False
    assert await is_usable(FakePage().locator("button.next").first) is False
