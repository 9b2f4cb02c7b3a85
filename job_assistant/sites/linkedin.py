"""LinkedIn jobs search layout."""
from __future__ import annotations

from typing import Any

from playwright.async_api import Error as PlaywrightError

from job_assistant.extractor import ExtractionProfile, FieldStrategy, KeywordStrategy, ListingExtractor
from job_assistant.log import get_logger
from job_assistant.pagination import NextPageStrategy, PaginationCrawler
from job_assistant.sites.base import SiteAdapter
from job_assistant.sites.registry import register_adapter
from job_assistant.watcher import ContentChangeWatcher, WatchTargets

log = get_logger(__name__)

JOB_VIEW_ID = r"/jobs/view/(\d+)"
TITLE_LINK = "a.job-card-list__title--link, a.job-card-container__link, a[href*='/jobs/view/']"

LISTING_CONTAINER = "ul.scaffold-layout__list-container"
LISTING_SELECTORS: tuple[str, ...] = (
    "li.scaffold-layout__list-item",
    "div[data-job-id]",
    ".job-card-container",
    ".jobs-search-results__list-item",
)

ID_STRATEGIES = (
    FieldStrategy("occludable-id", attribute="data-occludable-job-id"),
    FieldStrategy("title-link-href", TITLE_LINK, attribute="href", pattern=JOB_VIEW_ID),
    FieldStrategy("data-job-id", attribute="data-job-id"),
    FieldStrategy("nested-data-job-id", "div[data-job-id]", attribute="data-job-id"),
    FieldStrategy("entity-urn", attribute="data-entity-urn", pattern=r":(\d+)$"),
    FieldStrategy("urn", attribute="data-urn", pattern=r":(\d+)$"),
)

TITLE_STRATEGIES = (
    FieldStrategy("title-link-strong", "a.job-card-list__title--link strong"),
    FieldStrategy("title-link", "a.job-card-list__title--link"),
    FieldStrategy("container-link", "a.job-card-container__link"),
    FieldStrategy("lockup-title", ".artdeco-entity-lockup__title a"),
    FieldStrategy("job-view-link", "a[href*='/jobs/view/']"),
    FieldStrategy("card-title", ".job-card-list__title"),
)

COMPANY_STRATEGIES = (
    FieldStrategy("lockup-subtitle", ".artdeco-entity-lockup__subtitle"),
    FieldStrategy("lockup-subtitle-span", ".artdeco-entity-lockup__subtitle span"),
    FieldStrategy("company-name", ".job-card-container__company-name"),
    FieldStrategy("primary-description", ".job-card-container__primary-description"),
    FieldStrategy("lockup-second-div", ".artdeco-entity-lockup__content div:nth-child(2)"),
)

LOCATION_STRATEGIES = (
    FieldStrategy("metadata-wrapper", ".artdeco-entity-lockup__caption .job-card-container__metadata-wrapper li"),
    FieldStrategy("metadata-item", ".job-card-container__metadata-item"),
    FieldStrategy("search-card-location", ".job-search-card__location"),
    FieldStrategy("caption-item", ".artdeco-entity-lockup__caption li"),
    FieldStrategy("caption-span", ".artdeco-entity-lockup__caption span"),
)

SALARY_STRATEGIES = (
    KeywordStrategy(
        "metadata-salary",
        ".job-card-container__metadata-item, .artdeco-entity-lockup__caption li",
        ("$", "/yr", "/hour", "salary", "k/yr"),
    ),
)

NEXT_PAGE_STRATEGIES = (
    NextPageStrategy(
        "button[aria-label='View next page'], button.jobs-search-pagination__button--next",
        container="#jobs-search-results-footer",
    ),
    NextPageStrategy(
        "button[aria-label='View next page'], button[aria-label='Next'], "
        "button.jobs-search-pagination__button--next, button.artdeco-pagination__button--next",
        container=".jobs-search-pagination",
    ),
    NextPageStrategy(
        "button[aria-label='View next page'], button[aria-label='Next'], "
        "button.artdeco-pagination__button--next",
        container=".artdeco-pagination",
    ),
    NextPageStrategy("button.jobs-search-pagination__button--next"),
    NextPageStrategy("button.artdeco-pagination__button--next"),
    NextPageStrategy("button[aria-label='View next page']"),
    NextPageStrategy("button[aria-label='Next']"),
)

WATCH_TARGETS = WatchTargets(
    listing_markers=(".job-card-container", ".scaffold-layout__list-item", ".jobs-search-pagination"),
    description_markers=(".jobs-description", ".jobs-box--fadein"),
    pagination_markers=("#jobs-search-results-footer", ".jobs-search-pagination"),
)


@register_adapter
class LinkedInAdapter(SiteAdapter):
    name = "linkedin"
    origin_patterns = (r"^https?://([a-z0-9-]+\.)*linkedin\.com/",)

    def build_extractor(self) -> ListingExtractor:
        profile = ExtractionProfile(
            id_strategies=ID_STRATEGIES,
            title_strategies=TITLE_STRATEGIES,
            company_strategies=COMPANY_STRATEGIES,
            location_strategies=LOCATION_STRATEGIES,
            salary_strategies=SALARY_STRATEGIES,
            activate_selector=TITLE_LINK,
            description_selector=".jobs-description",
            source_url_template="https://www.linkedin.com/jobs/view/{id}/",
        )
        return ListingExtractor(self.page, profile)

    def build_crawler(self) -> PaginationCrawler:
        return PaginationCrawler(self.page, NEXT_PAGE_STRATEGIES)

    def build_watcher(self) -> ContentChangeWatcher:
        return ContentChangeWatcher(self.page, WATCH_TARGETS)

    async def find_listings(self) -> list[Any]:
        try:
            container = await self.page.query_selector(LISTING_CONTAINER)
            if container is not None:
                listings = await container.query_selector_all(LISTING_SELECTORS[0])
                if listings:
                    log.debug("Found %d listings in main container", len(listings))
                    return listings
            for selector in LISTING_SELECTORS:
                listings = await self.page.query_selector_all(selector)
                if listings:
                    log.debug("Found %d listings using fallback selector %s", len(listings), selector)
                    return listings
        except PlaywrightError as exc:
            log.error("Error finding job listings: %s", exc)
            return []
        log.debug("No job listings found with any selector")
        return []
