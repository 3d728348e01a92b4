"""Text normalization utilities for prices, numbers and URLs."""

import re
from typing import Any, Dict, Optional, Union
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

import structlog

logger = structlog.get_logger()


class PriceNormalizer:
    """Price parsing for listing pages in European and US formats."""

    @staticmethod
    def clean_price(raw: Optional[str]) -> Union[float, str, None]:
        """Parse a price string into a float.

        Handles various formats:
        - "1 234,56 €" -> 1234.56
        - "$1,234.56" -> 1234.56
        - "12 500 €" -> 12500.0
        - "1.234.567" -> 1234567.0

        When both "." and "," appear, the last one is the decimal mark.
        A lone separator followed by exactly three digits groups thousands,
        otherwise it is the decimal mark.

        Args:
            raw: Raw price text

        Returns:
            Float value, the trimmed original text if parsing fails,
            or None for empty input
        """
        if raw is None:
            return None
        text = raw.strip()
        if not text:
            return None

        cleaned = re.sub(r"[^\d.,]", "", text)
        if not re.search(r"\d", cleaned):
            return text

        has_dot = "." in cleaned
        has_comma = "," in cleaned
        if has_dot and has_comma:
            if cleaned.rfind(",") > cleaned.rfind("."):
                cleaned = cleaned.replace(".", "").replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")
        elif has_comma:
            cleaned = PriceNormalizer._resolve_single_separator(cleaned, ",")
        elif has_dot:
            cleaned = PriceNormalizer._resolve_single_separator(cleaned, ".")

        try:
            return float(cleaned)
        except ValueError:
            logger.debug("price_unparseable", raw=text)
            return text

    @staticmethod
    def _resolve_single_separator(value: str, separator: str) -> str:
        """Decide whether a lone separator kind is decimal or thousands."""
        parts = value.split(separator)
        if len(parts) > 2:
            # Repeated separator: thousands grouping
            return "".join(parts)
        head, tail = parts
        if len(tail) == 3 and head not in ("", "0"):
            return head + tail
        return f"{head}.{tail}"


def extract_number(text: Optional[str]) -> Optional[int]:
    """Keep only the digits of a text, e.g. "45 000 km" -> 45000."""
    if not text:
        return None
    digits = re.sub(r"\D", "", text)
    if not digits:
        return None
    return int(digits)


def clean_text(text: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty strings become None."""
    if text is None:
        return None
    collapsed = re.sub(r"\s+", " ", text).strip()
    return collapsed or None


def resolve_url(href: Optional[str], base_url: str = "") -> Optional[str]:
    """Resolve a possibly relative href against the page URL."""
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith(("javascript:", "#")):
        return None
    if href.startswith("//"):
        return "https:" + href
    if base_url:
        return urljoin(base_url, href)
    return href


def set_query_params(url: str, params: Dict[str, Any]) -> str:
    """Return url with the given query parameters set or replaced.

    Parameters whose value is None are left out.
    """
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend((k, str(v)) for k, v in params.items() if v is not None)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
