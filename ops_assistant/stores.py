"""In-process stores with an explicit lifecycle.

Each component receives the store it needs instead of reaching for a module
global, so tests build fresh stores and a durable backend can replace these
classes later. State is volatile across restarts.
"""
from __future__ import annotations

import asyncio
import copy
import logging
import time
from threading import Lock
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TtlCache:
  """Key/value cache; entries expire lazily on read and are evicted by sweep."""

  def __init__(self, clock: Clock = time.time) -> None:
    self._clock = clock
    self._items: Dict[Hashable, Tuple[Any, float]] = {}
    self._lock = Lock()

  def now(self) -> float:
    return self._clock()

  def get(self, key: Hashable, max_age: Optional[float] = None) -> Any:
    with self._lock:
      entry = self._items.get(key)
      if entry is None:
        return None
      value, stored_at = entry
      if max_age is not None and self._clock() - stored_at > max_age:
        self._items.pop(key, None)
        return None
      return copy.deepcopy(value)

  def set(self, key: Hashable, value: Any) -> None:
    with self._lock:
      self._items[key] = (copy.deepcopy(value), self._clock())

  def clear(self, namespace: Optional[str] = None) -> int:
    """Drop every entry, or only tuple keys whose first item is ``namespace``."""
    with self._lock:
      if namespace is None:
        dropped = len(self._items)
        self._items.clear()
        return dropped
      stale = [k for k in self._items
               if isinstance(k, tuple) and k and k[0] == namespace]
      for key in stale:
        del self._items[key]
    return len(stale)

  def sweep(self, retention: float) -> int:
    now = self._clock()
    with self._lock:
      stale = [k for k, (_, ts) in self._items.items() if now - ts > retention]
      for key in stale:
        del self._items[key]
    return len(stale)

  def __len__(self) -> int:
    with self._lock:
      return len(self._items)

  def __contains__(self, key: Hashable) -> bool:
    with self._lock:
      return key in self._items


def thread_key(channel: str, thread_ts: Optional[str]) -> str:
  return f"{channel}::{thread_ts or 'root'}"


class ThreadStore:
  """Per-thread dict state keyed by (channel, thread), merged on write."""

  def __init__(self, clock: Clock = time.time) -> None:
    self._clock = clock
    self._items: Dict[str, Dict[str, Any]] = {}
    self._updated: Dict[str, float] = {}
    self._lock = Lock()

  def get(self, channel: str, thread_ts: Optional[str]) -> Dict[str, Any]:
    key = thread_key(channel, thread_ts)
    with self._lock:
      stored = self._items.get(key)
      if not isinstance(stored, dict):
        return {}
      return copy.deepcopy(stored)

  def update(self, channel: str, thread_ts: Optional[str],
             data: Dict[str, Any]) -> Dict[str, Any]:
    if not channel or not isinstance(data, dict):
      return {}
    key = thread_key(channel, thread_ts)
    with self._lock:
      merged = {**self._items.get(key, {}), **copy.deepcopy(data)}
      self._items[key] = merged
      self._updated[key] = self._clock()
      return copy.deepcopy(merged)

  def sweep(self, retention: float) -> int:
    now = self._clock()
    with self._lock:
      stale = [k for k, ts in self._updated.items() if now - ts > retention]
      for key in stale:
        self._items.pop(key, None)
        self._updated.pop(key, None)
    return len(stale)

  def __len__(self) -> int:
    with self._lock:
      return len(self._items)


class Stores:

  def __init__(self, clock: Clock = time.time) -> None:
    self.timezones = TtlCache(clock)
    self.api_cache = TtlCache(clock)
    self.seen_events = TtlCache(clock)
    self.conversations = ThreadStore(clock)
    self.thread_context = ThreadStore(clock)

  def close(self) -> None:
    self.timezones.clear()
    self.api_cache.clear()
    self.seen_events.clear()


def create_stores(clock: Clock = time.time) -> Stores:
  return Stores(clock)


def sweep_stores(stores: Stores,
                 retention: float,
                 timezone_retention: float,
                 thread_retention: float) -> Dict[str, int]:
  evicted = {
      "api_cache": stores.api_cache.sweep(retention),
      "seen_events": stores.seen_events.sweep(retention),
      "timezones": stores.timezones.sweep(timezone_retention),
      "conversations": stores.conversations.sweep(thread_retention),
      "thread_context": stores.thread_context.sweep(thread_retention),
  }
  if any(evicted.values()):
    logger.info("Cache sweep evicted %s", evicted)
  return evicted


async def run_periodic_sweep(stores: Stores,
                             interval: float,
                             retention: float,
                             timezone_retention: float,
                             thread_retention: float) -> None:
  while True:
    await asyncio.sleep(interval)
    sweep_stores(stores, retention, timezone_retention, thread_retention)
