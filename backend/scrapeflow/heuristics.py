"""JavaScript-requirement heuristic.

Decides whether a lightweight (static HTML) result is insufficient and
the job should be re-run with the rendered strategy. Pure functions; the
orchestrator owns the decision to escalate.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

from scrapeflow.models import ScrapedData

MIN_ITEMS = 3
MAX_INCOMPLETE_RATIO = 0.5

# Reasons returned by escalation_reason()
NO_ITEMS = "no_items"
TOO_FEW_ITEMS = "too_few_items"
MOSTLY_INCOMPLETE = "mostly_incomplete_items"

JS_SHELL_MARKERS = ("__NEXT_DATA__", "__NUXT__", "window.__INITIAL_STATE__")
ENABLE_JS_PATTERN = re.compile(r"enable\s+javascript", re.IGNORECASE)


def escalation_reason(result: ScrapedData) -> Optional[str]:
    """Name of the first rule that makes result insufficient, or None.

    Rules, in order:
    - zero items
    - fewer than MIN_ITEMS items
    - more than half of the items lack both a title and a URL
    """
    items = result.items
    if not items:
        return NO_ITEMS
    if len(items) < MIN_ITEMS:
        return TOO_FEW_ITEMS
    incomplete = sum(1 for item in items if not item.title and not item.url)
    if incomplete / len(items) > MAX_INCOMPLETE_RATIO:
        return MOSTLY_INCOMPLETE
    return None


def needs_escalation(result: ScrapedData) -> bool:
    """True if the lightweight result should be replaced by a rendered run."""
    return escalation_reason(result) is not None


def js_shell_markers(html: str, document: Optional[BeautifulSoup] = None) -> list:
    """Static hints that a page is a client-rendered shell.

    Diagnostic only; the escalation decision is made on extracted items.
    """
    markers = [marker for marker in JS_SHELL_MARKERS if marker in html]
    if ENABLE_JS_PATTERN.search(html):
        markers.append("enable_javascript_notice")

    document = document or BeautifulSoup(html, "html.parser")
    app_root = document.select_one("#app, #root, #__next")
    if app_root is not None and not app_root.get_text(strip=True) and not app_root.find(True):
        markers.append("empty_app_root")
    body = document.body
    if body is None or len(body.find_all(recursive=False)) < 5:
        markers.append("sparse_body")
    return markers
