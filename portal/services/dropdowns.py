"""
Dropdown option sets.

Option lists change rarely, so each category is kept in the Django cache
for ``DROPDOWN_CACHE_TTL`` seconds (one hour by default).  A failed fetch
returns an empty list and is not cached, so the next form mount retries.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional
from urllib.parse import quote

from django.conf import settings
from django.core.cache import cache as default_cache

from portal.exceptions import UpstreamError
from portal.services.upstream import Envelope, UpstreamClient

logger = logging.getLogger(__name__)

CATEGORIES_KEY = 'dropdown:categories'


def _option_key(category: str) -> str:
    return f'dropdown:options:{quote(category, safe="")}'


@dataclass
class DropdownOptionSet:
    category: str
    options: list[str] = field(default_factory=list)
    fetched_at: float = 0.0

    def is_fresh(self, ttl: int, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return (now - self.fetched_at) < ttl

    def to_dict(self) -> dict:
        return {'category': self.category, 'options': list(self.options), 'fetchedAt': self.fetched_at}

    @classmethod
    def from_dict(cls, raw: dict) -> 'DropdownOptionSet':
        return cls(category=raw['category'], options=list(raw.get('options') or []),
                   fetched_at=float(raw.get('fetchedAt') or 0))


def option_names(items: list) -> list[str]:
    names: list[str] = []
    for item in items:
        if isinstance(item, str):
            name = item
        elif isinstance(item, dict):
            name = item.get('name')
        else:
            name = None
        if name:
            names.append(str(name))
    return names


class DropdownService:
    def __init__(self, client: UpstreamClient, cache=None, *, ttl: Optional[int] = None):
        self.client = client
        self.cache = cache or default_cache
        self.ttl = ttl if ttl is not None else settings.DROPDOWN_CACHE_TTL

    def categories(self) -> list[str]:
        cached = self.cache.get(CATEGORIES_KEY)
        if cached:
            return list(cached)
        try:
            env = Envelope.parse(self.client.get('/professions/categories'), expect=list)
        except UpstreamError as exc:
            logger.warning('dropdown categories unavailable: %s', exc.message)
            return []
        data = [str(c) for c in env.data if c]
        self.cache.set(CATEGORIES_KEY, data, self.ttl)
        return data

    def option_set(self, category: str) -> DropdownOptionSet:
        raw = self.cache.get(_option_key(category))
        if raw:
            cached = DropdownOptionSet.from_dict(raw)
            if cached.is_fresh(self.ttl):
                return cached
        try:
            env = Envelope.parse(self.client.get(f'/professions/category/{quote(category, safe="")}'), expect=list)
        except UpstreamError as exc:
            logger.warning('dropdown %r unavailable: %s', category, exc.message)
            return DropdownOptionSet(category=category)
        option_set = DropdownOptionSet(category=category, options=option_names(env.data),
                                       fetched_at=time.time())
        self.cache.set(_option_key(category), option_set.to_dict(), self.ttl)
        return option_set

    def options(self, category: str) -> list[str]:
        return self.option_set(category).options

    def options_many(self, categories: Iterable[str]) -> dict[str, list[str]]:
        return {category: self.options(category) for category in categories}

    def invalidate(self, category: Optional[str] = None) -> None:
        if category is None:
            self.cache.delete(CATEGORIES_KEY)
        else:
            self.cache.delete(_option_key(category))


def display_options(options: Iterable[str], current: Optional[str] = None) -> list[str]:
    """Options plus the current value when it is missing, de-duplicated in order."""
    items = list(options)
    trimmed = (current or '').strip()
    if trimmed:
        items.append(trimmed)
    seen: set[str] = set()
    result = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result
