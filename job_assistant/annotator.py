"""Render cache entries as badges on listing cards."""
from __future__ import annotations

import html
import re
from typing import Any

from playwright.async_api import Error as PlaywrightError

from job_assistant.log import get_logger
from job_assistant.models import CacheEntry, Verdict

log = get_logger(__name__)

BADGE_CLASS = "search-assist-badge"

_BADGES: dict[Verdict, tuple[str, str, str, str]] = {
    # symbol, colour, fallback tooltip, overlay heading
    Verdict.FIT: ("✓", "#4caf50", "Good match based on your criteria!", "✓ Good Match"),
    Verdict.NO_FIT: ("✗", "#f44336", "Not a good match for your criteria", "✗ Not a Match"),
    Verdict.UNKNOWN: ("?", "#ff9800", "Match unknown", "? Indeterminate"),
}

_STYLES = """
.search-assist-badge {
    position: absolute; top: 36px; right: 10px; width: 27px; height: 27px;
    border-radius: 50%; color: white; font-weight: bold; font-size: 16px;
    display: flex; align-items: center; justify-content: center; z-index: 10;
    box-shadow: 0 2px 4px rgba(0,0,0,0.2); cursor: pointer; transition: transform 0.2s;
}
.search-assist-badge:hover { transform: scale(1.2); }
.search-assist-overlay {
    position: fixed; inset: 0; background-color: rgba(0,0,0,0.7); z-index: 9999;
    display: flex; justify-content: center; align-items: center;
}
.search-assist-modal {
    background-color: white; border-radius: 8px; padding: 20px; width: 600px;
    max-height: 80vh; overflow-y: auto; box-shadow: 0 4px 12px rgba(0,0,0,0.2);
}
"""

_INSTALL_STYLES_JS = """
(css) => {
    if (document.getElementById('search-assist-styles')) return false;
    const style = document.createElement('style');
    style.id = 'search-assist-styles';
    style.textContent = css;
    document.head.appendChild(style);
    return true;
}
"""

_BADGE_JS = """
(listing, b) => {
    let badge = listing.querySelector('.search-assist-badge');
    const created = !badge;
    if (created) {
        badge = document.createElement('div');
        badge.className = 'search-assist-badge';
        listing.style.position = 'relative';
        listing.appendChild(badge);
    }
    badge.setAttribute('data-job-id', b.id);
    badge.setAttribute('data-verdict', b.verdict);
    badge.textContent = b.symbol;
    badge.style.backgroundColor = b.color;
    badge.title = b.tooltip;
    badge.onclick = (e) => {
        e.preventDefault();
        e.stopPropagation();
        const overlay = document.createElement('div');
        overlay.className = 'search-assist-overlay';
        overlay.innerHTML = b.overlay;
        overlay.addEventListener('click', (ev) => {
            if (ev.target === overlay || ev.target.classList.contains('search-assist-close')) overlay.remove();
        });
        document.body.appendChild(overlay);
    };
    return created;
}
"""

_LI_RE = re.compile(r"<li[^>]*>(.*?)</li>", re.IGNORECASE | re.DOTALL)
_STRONG_TAIL_RE = re.compile(r"</strong>\s*([^<]+)", re.IGNORECASE)
_P_RE = re.compile(r"<p[^>]*>(.*?)</p>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")


def _text(fragment: str) -> str:
    return html.unescape(_TAG_RE.sub("", fragment)).strip()


def extract_reason(markup: str | None) -> str | None:
    """First reason from the rationale: first list item, text after <strong>, or first paragraph."""
    if not markup:
        return None
    for pattern in (_LI_RE, _STRONG_TAIL_RE, _P_RE):
        m = pattern.search(markup)
        if m and _text(m.group(1)):
            return _text(m.group(1))
    return None


def overlay_markup(entry: CacheEntry) -> str:
    _, color, _, heading = _BADGES[entry.verdict]
    parts = [
        '<div class="search-assist-modal">',
        f"<h2>{html.escape(entry.title or 'Job Analysis')}</h2>",
        f"<h3>{html.escape(entry.company)}</h3>",
        f"<p>{html.escape(entry.location)}</p>",
    ]
    if entry.salary:
        parts.append(f'<p style="font-style: italic">Salary: {html.escape(entry.salary)}</p>')
    parts.append(f'<h3 style="color: {color};">{heading}</h3>')
    parts.append(f'<div class="search-assist-analysis">{entry.rationale_markup or "<p>No detailed analysis available.</p>"}</div>')
    parts.append('<button class="search-assist-close" style="margin-top: 20px; padding: 8px 16px">Close</button>')
    parts.append("</div>")
    return "".join(parts)


def badge_spec(entry: CacheEntry) -> dict[str, str]:
    verdict = Verdict.coerce(entry.verdict)
    symbol, color, fallback, _ = _BADGES[verdict]
    tooltip = fallback if verdict is Verdict.UNKNOWN else (extract_reason(entry.rationale_markup) or fallback)
    return {
        "id": entry.id,
        "verdict": verdict.value,
        "symbol": symbol,
        "color": color,
        "tooltip": tooltip,
        "overlay": overlay_markup(entry),
    }


class UIAnnotator:
    def __init__(self, page: Any) -> None:
        self.page = page

    async def install_styles(self) -> None:
        try:
            await self.page.evaluate(_INSTALL_STYLES_JS, _STYLES)
        except PlaywrightError as exc:
            log.debug("Could not add styles: %s", exc)

    async def render(self, listing: Any, entry: CacheEntry) -> bool:
        """Add or update the badge on one listing. False if the card is gone."""
        entry.verdict = Verdict.coerce(entry.verdict)
        try:
            created = await listing.evaluate(_BADGE_JS, badge_spec(entry))
        except PlaywrightError as exc:
            log.warning("Listing %s no longer in the page, can't update UI: %s", entry.id, exc)
            return False
        log.debug("%s badge for %s (%s)", "Added" if created else "Updated", entry.id, entry.verdict.value)
        return True
