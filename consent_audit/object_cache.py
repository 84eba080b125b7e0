import logging
from typing import Callable, Dict, Generic, Iterator, Optional, TypeVar

import requests

from .errors import GraphError

T = TypeVar("T")


class ObjectCache(Generic[T]):
    """
    Read-through cache keyed by directory object id.

    - get_or_fetch(id): cache hit, or one call to the fetcher on a miss
    - a failed lookup is logged and returns None; nothing is stored, so
      the entry simply stays unset
    - entries are never replaced once populated
    """

    def __init__(self, fetch: Callable[[str], T], name: str = "object"):
        self._fetch = fetch
        self._name = name
        self._items: Dict[str, T] = {}

    def get_or_fetch(self, object_id: Optional[str]) -> Optional[T]:
        if not object_id:
            return None
        if object_id in self._items:
            return self._items[object_id]

        try:
            obj = self._fetch(object_id)
        except (GraphError, requests.RequestException) as e:
            logging.info(f"[ObjectCache] {self._name} {object_id} not resolved: {e}")
            return None

        if obj is None:
            logging.info(f"[ObjectCache] {self._name} {object_id} not found")
            return None
        return self._items.setdefault(object_id, obj)

    def add(self, obj: T) -> T:
        """Seed an entry (bulk precache). An existing entry wins."""
        return self._items.setdefault(obj.id, obj)

    def __contains__(self, object_id: str) -> bool:
        return object_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))
