"""Normalization of raw provider responses and dedup keys.

Providers answer in a handful of shapes. They are recognised here, at
the boundary, so the rest of the pipeline only ever sees SearchItem.
"""

import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import structlog
from pydantic import ValidationError

from fanout.models.search import ResponseShape, SearchItem

logger = structlog.get_logger()

# SearchItem field -> accepted raw keys, first present wins
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "title": ("title", "name"),
    "url": ("url", "link", "href"),
    "snippet": ("snippet", "description", "summary"),
    "content": ("content",),
    "score": ("score",),
    "published_at": ("published_at", "publishedAt", "date"),
}

_KNOWN_KEYS = {key for aliases in FIELD_ALIASES.values() for key in aliases}
_WHITESPACE = re.compile(r"\s+")


def detect_shape(raw: Any) -> Tuple[List[Any], ResponseShape]:
    """Locate the item list inside a raw response."""
    if isinstance(raw, list):
        return raw, ResponseShape.ARRAY
    if isinstance(raw, dict):
        if isinstance(raw.get("results"), list):
            return raw["results"], ResponseShape.RESULTS
        if isinstance(raw.get("data"), list):
            return raw["data"], ResponseShape.DATA
    return [], ResponseShape.UNRECOGNIZED


def _first(raw: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _as_score(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def coerce_item(raw: Any, provider_id: str) -> Optional[SearchItem]:
    """Convert one raw element to a SearchItem.

    Returns:
        The item, or None when the element has neither a title nor a URL
        or is not a mapping.
    """
    if isinstance(raw, SearchItem):
        return raw if raw.source else raw.model_copy(update={"source": provider_id})

    if not isinstance(raw, dict):
        return None

    title = _as_text(_first(raw, FIELD_ALIASES["title"]))
    url = _as_text(_first(raw, FIELD_ALIASES["url"]))
    if not title and not url:
        return None

    content = _first(raw, FIELD_ALIASES["content"])
    metadata = {k: v for k, v in raw.items() if k not in _KNOWN_KEYS}

    try:
        return SearchItem(
            title=title,
            url=url,
            snippet=_as_text(_first(raw, FIELD_ALIASES["snippet"])),
            content=_as_text(content) if content is not None else None,
            source=provider_id,
            score=_as_score(_first(raw, FIELD_ALIASES["score"])),
            published_at=_first(raw, FIELD_ALIASES["published_at"]),
            metadata=metadata,
        )
    except ValidationError:
        return None


def normalize_response(
    raw: Any, provider_id: str
) -> Tuple[List[SearchItem], ResponseShape]:
    """Normalize a raw provider response into SearchItems.

    Unrecognised shapes are a zero-result success, not an error.
    """
    elements, shape = detect_shape(raw)

    if shape == ResponseShape.UNRECOGNIZED:
        logger.warning(
            "unrecognized_response_shape",
            provider=provider_id,
            response_type=type(raw).__name__,
        )
        return [], shape

    items = []
    dropped = 0
    for element in elements:
        item = coerce_item(element, provider_id)
        if item is None:
            dropped += 1
            continue
        items.append(item)

    if dropped:
        logger.debug("response_items_dropped", provider=provider_id, dropped=dropped)

    return items, shape


def normalize_url(url: str) -> str:
    """Canonical URL for dedup.

    Trims, lowercases scheme and host, drops the fragment and any
    trailing slash on the path.
    """
    url = (url or "").strip()
    if not url:
        return ""

    try:
        parts = urlsplit(url)
    except ValueError:
        return url.lower()

    path = parts.path.rstrip("/")
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, parts.query, "")
    )


def normalize_title(title: str) -> str:
    """Casefold and collapse whitespace."""
    return _WHITESPACE.sub(" ", (title or "").casefold()).strip()


def dedup_key(item: SearchItem) -> Tuple[str, str]:
    return normalize_url(item.url), normalize_title(item.title)
