"""Tests for adapter detection, the per-page registry and the LinkedIn layout."""
import pytest
from conftest import FakeElement, FakePage

from job_assistant.sites import AdapterRegistry, LinkedInAdapter, adapter_class_for, registered_adapters
from job_assistant.sites.linkedin import LISTING_CONTAINER, LISTING_SELECTORS
from job_assistant.watcher import BINDING_NAME


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.linkedin.com/jobs/search/?keywords=python", LinkedInAdapter),
        ("https://linkedin.com/jobs/collections/recommended/", LinkedInAdapter),
        ("https://example.com/jobs", None),
        ("https://example.com/?next=linkedin.com/", None),
        ("", None),
    ],
)
def test_adapter_class_for(url, expected):
    assert adapter_class_for(url) is expected


def test_linkedin_is_registered():
    assert LinkedInAdapter in registered_adapters()


@pytest.mark.asyncio
async def test_registry_returns_same_adapter_per_page(page):
    registry = AdapterRegistry()

    first = await registry.get_or_create(page)
    second = await registry.get_or_create(page)

    assert first is second
    assert isinstance(first, LinkedInAdapter)
    assert page in registry
    assert list(page.bindings) == [BINDING_NAME]
    assert first.initialized


@pytest.mark.asyncio
async def test_registry_separates_pages():
    registry = AdapterRegistry()
    a = await registry.get_or_create(FakePage())
    b = await registry.get_or_create(FakePage())
    assert a is not b


@pytest.mark.asyncio
async def test_unsupported_page_gets_no_adapter():
    registry = AdapterRegistry()
    page = FakePage("https://example.com/careers")
    assert await registry.get_or_create(page) is None
    assert page not in registry


@pytest.mark.asyncio
async def test_release_stops_watching(page):
    registry = AdapterRegistry()
    adapter = await registry.get_or_create(page)
    assert adapter.watcher.observing

    await registry.release(page)

    assert not adapter.watcher.observing
    assert registry.get(page) is None


@pytest.mark.asyncio
async def test_listings_from_main_container(page):
    cards = [FakeElement("one"), FakeElement("two")]
    page.children[LISTING_CONTAINER] = [FakeElement(children={LISTING_SELECTORS[0]: cards})]
    page.children["div[data-job-id]"] = [FakeElement("other")]
    assert await LinkedInAdapter(page).find_listings() == cards


@pytest.mark.asyncio
async def test_listings_from_fallback_selector(page):
    cards = [FakeElement("one")]
    page.children[".job-card-container"] = cards
    assert await LinkedInAdapter(page).find_listings() == cards


@pytest.mark.asyncio
async def test_next_page_in_results_footer(page):
    button = FakeElement("Next")
    footer = FakeElement(children={
        "button[aria-label='View next page'], button.jobs-search-pagination__button--next": [button],
    })
    page.children["#jobs-search-results-footer"] = [footer]
    control = await LinkedInAdapter(page).find_next_page()
    await control.click()
    assert button.clicks == 1


@pytest.mark.asyncio
async def test_no_next_page_on_last_page(page):
    page.children["button"] = [FakeElement("Previous")]
    assert await LinkedInAdapter(page).find_next_page() is None


@pytest.mark.asyncio
async def test_wait_for_listings_gives_up(page):
    assert await LinkedInAdapter(page).wait_for_listings(attempts=2, delay=0) == []
