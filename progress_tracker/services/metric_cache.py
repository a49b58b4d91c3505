"""Keyed, time-limited cache of computed progress metrics.

The cache is passive: it never computes a miss. Read paths call ``get``,
compute through the aggregator on a miss and ``set`` the result.

Two backends share one contract:

- ``InMemoryMetricCache`` – lock-guarded ``OrderedDict`` with TTL and an
  LRU bound, owned by one process.
- ``RedisMetricCache`` – ``SETEX`` / ``SCAN`` over Redis, shared by workers.

Writers of ProgressLog / Assignment rows call the module-level
``invalidate_*`` helpers, which log and swallow failures so that a cache
outage can never fail the write that triggered it.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
import uuid
from collections import OrderedDict
from typing import Callable, NamedTuple, Protocol, Union

import redis
from pydantic import BaseModel, ValidationError

from progress_tracker.config import settings
from progress_tracker.schemas.progress import DualMetrics, LessonProgress, TopicProgress

logger = logging.getLogger(__name__)

Metric = Union[TopicProgress, LessonProgress, DualMetrics]


class MetricScope(str, enum.Enum):
    TOPIC = "topic"
    LESSON = "lesson"
    DUAL = "dual"


# Lesson aggregates derive from topic data, so the two always drop together
TOPIC_DEPENDENT_SCOPES = (MetricScope.TOPIC, MetricScope.LESSON)

_MODELS: dict[MetricScope, type[BaseModel]] = {
    MetricScope.TOPIC: TopicProgress,
    MetricScope.LESSON: LessonProgress,
    MetricScope.DUAL: DualMetrics,
}


class CacheKey(NamedTuple):
    scope: MetricScope
    student_id: uuid.UUID
    scope_id: uuid.UUID | None = None

    @classmethod
    def topic(cls, student_id: uuid.UUID, topic_id: uuid.UUID) -> CacheKey:
        return cls(MetricScope.TOPIC, student_id, topic_id)

    @classmethod
    def lesson(cls, student_id: uuid.UUID, lesson_id: uuid.UUID) -> CacheKey:
        return cls(MetricScope.LESSON, student_id, lesson_id)

    @classmethod
    def dual(cls, student_id: uuid.UUID) -> CacheKey:
        return cls(MetricScope.DUAL, student_id)

    def __str__(self) -> str:
        return f"{self.scope.value}:{self.student_id}:{self.scope_id or '-'}"


class MetricCache(Protocol):
    """Metrics returned by ``get`` are independent of the stored entry."""

    def get(self, key: CacheKey) -> Metric | None: ...
    def set(self, key: CacheKey, metric: Metric) -> None: ...
    def invalidate_student_topic_progress(self, student_id: uuid.UUID) -> int: ...
    def invalidate_dual_metrics(self, student_id: uuid.UUID) -> int: ...
    def clear(self) -> None: ...


# ── In-Memory Implementation ──────────────────────────────


class InMemoryMetricCache:
    """Process-local cache. One lock guards the map; keys are independent."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._store: OrderedDict[CacheKey, tuple[float, Metric]] = OrderedDict()

    def get(self, key: CacheKey) -> Metric | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, metric = entry
            if self._clock() >= expires_at:
                del self._store[key]
                return None
            self._store.move_to_end(key)
            return metric.model_copy(deep=True)

    def set(self, key: CacheKey, metric: Metric) -> None:
        with self._lock:
            self._store[key] = (self._clock() + self.ttl_seconds, metric)
            self._store.move_to_end(key)
            while len(self._store) > self.max_entries:
                evicted, _ = self._store.popitem(last=False)
                logger.debug("Metric cache evicted %s", evicted)

    def _drop(self, student_id: uuid.UUID, scopes: tuple[MetricScope, ...]) -> int:
        with self._lock:
            doomed = [
                k for k in self._store if k.student_id == student_id and k.scope in scopes
            ]
            for k in doomed:
                del self._store[k]
            return len(doomed)

    def invalidate_student_topic_progress(self, student_id: uuid.UUID) -> int:
        """Drop every topic- and lesson-scoped entry of the student."""
        return self._drop(student_id, TOPIC_DEPENDENT_SCOPES)

    def invalidate_dual_metrics(self, student_id: uuid.UUID) -> int:
        return self._drop(student_id, (MetricScope.DUAL,))

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


# ── Redis Implementation ──────────────────────────────────


class RedisMetricCache:
    """Redis-backed cache; metrics are stored as pydantic JSON under SETEX."""

    prefix = "progress_cache"

    def __init__(self, client: redis.Redis, ttl_seconds: int = 300) -> None:
        self._r = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 300) -> RedisMetricCache:
        pool = redis.ConnectionPool.from_url(url, decode_responses=True, max_connections=10)
        return cls(redis.Redis(connection_pool=pool), ttl_seconds=ttl_seconds)

    def _key(self, key: CacheKey) -> str:
        return f"{self.prefix}:{key}"

    def get(self, key: CacheKey) -> Metric | None:
        try:
            raw = self._r.get(self._key(key))
        except redis.RedisError as e:
            logger.warning("Metric cache read failed (non-fatal): %s", e)
            return None
        if not raw:
            logger.debug("Metric cache MISS: %s", key)
            return None
        try:
            metric = _MODELS[key.scope].model_validate_json(raw)
        except ValidationError as e:
            # Corrupt or written under an older schema: drop it and recompute
            logger.warning("Metric cache entry %s undecodable (non-fatal): %s", key, e)
            try:
                self._r.delete(self._key(key))
            except redis.RedisError as del_err:
                logger.warning("Metric cache delete failed (non-fatal): %s", del_err)
            return None
        logger.debug("Metric cache HIT: %s", key)
        return metric  # type: ignore[return-value]

    def set(self, key: CacheKey, metric: Metric) -> None:
        try:
            self._r.setex(self._key(key), self.ttl_seconds, metric.model_dump_json())
        except redis.RedisError as e:
            logger.warning("Metric cache write failed (non-fatal): %s", e)

    def _drop(self, student_id: uuid.UUID, scopes: tuple[MetricScope, ...]) -> int:
        doomed: list[str] = []
        for scope in scopes:
            pattern = f"{self.prefix}:{scope.value}:{student_id}:*"
            doomed.extend(self._r.scan_iter(match=pattern))
        if doomed:
            self._r.delete(*doomed)
        return len(doomed)

    def invalidate_student_topic_progress(self, student_id: uuid.UUID) -> int:
        """Drop every topic- and lesson-scoped entry of the student."""
        return self._drop(student_id, TOPIC_DEPENDENT_SCOPES)

    def invalidate_dual_metrics(self, student_id: uuid.UUID) -> int:
        return self._drop(student_id, (MetricScope.DUAL,))

    def clear(self) -> None:
        doomed = list(self._r.scan_iter(match=f"{self.prefix}:*"))
        if doomed:
            self._r.delete(*doomed)


def build_metric_cache() -> MetricCache:
    """Construct the backend named by ``PROGRESS_CACHE_BACKEND``."""
    backend = settings.PROGRESS_CACHE_BACKEND.lower()
    if backend == "redis":
        logger.info("Using Redis metric cache at %s", settings.REDIS_URL)
        return RedisMetricCache.from_url(
            settings.REDIS_URL, ttl_seconds=settings.PROGRESS_CACHE_TTL_SECONDS
        )
    if backend != "memory":
        raise ValueError(f"Unknown PROGRESS_CACHE_BACKEND: {settings.PROGRESS_CACHE_BACKEND}")
    return InMemoryMetricCache(
        ttl_seconds=settings.PROGRESS_CACHE_TTL_SECONDS,
        max_entries=settings.PROGRESS_CACHE_MAX_ENTRIES,
    )


# ── Best-effort invalidation hooks for writers ────────────


def invalidate_student_topic_progress_cache(cache: MetricCache, student_id: uuid.UUID) -> None:
    """Drop topic + lesson entries for the student; never raises."""
    try:
        dropped = cache.invalidate_student_topic_progress(student_id)
        logger.debug("Invalidated %d topic/lesson entries for %s", dropped, student_id)
    except Exception:
        logger.exception("Topic progress cache invalidation failed for %s", student_id)


def invalidate_dual_metrics_cache(cache: MetricCache, student_id: uuid.UUID) -> None:
    """Drop the dual-metric entry for the student; never raises."""
    try:
        cache.invalidate_dual_metrics(student_id)
    except Exception:
        logger.exception("Dual metrics cache invalidation failed for %s", student_id)


def invalidate_student_progress_caches(cache: MetricCache, student_id: uuid.UUID) -> None:
    """Everything a ProgressLog or Assignment write can change for one student."""
    invalidate_student_topic_progress_cache(cache, student_id)
    invalidate_dual_metrics_cache(cache, student_id)
