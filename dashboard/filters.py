from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple


logger = logging.getLogger(__name__)

FilterOptionSet = Tuple[str, ...]


@dataclass(frozen=True)
class FilterField:
    """One selectable column filter.

    `key` is the query parameter sent to /customers, `source` the field name
    used for /customers/filters/{source}; the two are configured, not derived.
    """

    key: str
    source: str
    label: str


DEFAULT_FILTER_FIELDS: Tuple[FilterField, ...] = (
    FilterField(key="gender", source="gender", label="Gender"),
    FilterField(key="locationType", source="Location Type", label="Location Type"),
    FilterField(key="brandDevice", source="Brand Device", label="Brand Device"),
    FilterField(key="digitalInterest", source="Digital Interest", label="Digital Interest"),
)


def normalize_options(values: Optional[Iterable[object]]) -> FilterOptionSet:
    """Distinct non-empty string values, first occurrence order kept."""
    if not values:
        return ()
    seen: Dict[str, None] = {}
    for v in values:
        if v is None:
            continue
        s = str(v)
        if s and s not in seen:
            seen[s] = None
    return tuple(seen)


async def load_filter_options(
    fetch: Callable[[str], Awaitable[List[str]]],
    fields: Sequence[FilterField],
) -> Dict[str, FilterOptionSet]:
    """Fetch the option list of every field concurrently, keyed by `FilterField.key`.

    A field whose request fails gets an empty option set; the others are
    unaffected.
    """
    results = await asyncio.gather(*(fetch(f.source) for f in fields), return_exceptions=True)
    options: Dict[str, FilterOptionSet] = {}
    for f, result in zip(fields, results):
        if isinstance(result, Exception):
            logger.warning("filter options for %r unavailable: %s", f.source, result)
            options[f.key] = ()
            continue
        if isinstance(result, BaseException):
            raise result
        options[f.key] = normalize_options(result)
    return options
