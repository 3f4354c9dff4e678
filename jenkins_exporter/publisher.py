"""
In-memory gauge state shared between the poller and the HTTP handler.

The poller is the only writer and the /metrics handler the only reader.
All access goes through MetricPublisher, which guards the state with a
single lock so a scrape sees either the previous cycle or the current one.
"""
import logging
import threading
import time
from collections.abc import Iterable, Sequence
from typing import TypedDict

from jenkins_exporter.fetcher import NodeStatus

logger = logging.getLogger(__name__)

ONLINE_STATUS = "online_status"
TEMPORARILY_OFFLINE_STATUS = "temporarily_offline_status"

# (metric name, url, node)
SampleKey = tuple[str, str, str]


class GaugeSample(TypedDict):
    """One published gauge value; value is always 0.0 or 1.0."""
    name: str
    node: str
    url: str
    value: float


class ScrapeResult(TypedDict):
    """Outcome of fetching one target during a cycle."""
    target: str
    statuses: list[NodeStatus] | None
    error: str | None
    error_type: str | None
    duration: float


class TargetStats(TypedDict):
    """Per-target scrape bookkeeping."""
    up: float
    last_success: float
    last_error: str | None
    duration: float
    errors: dict[str, float]


def _flag(value: bool) -> float:
    return 1.0 if value else 0.0


class MetricPublisher:
    """
    Holds the current gauge set.

    Samples for a node are overwritten every time its target reports it.
    By default nothing is ever evicted: a node that disappears from the
    document, or a target that stops answering, keeps its last samples.
    With ``evict_stale=True`` a successful update replaces the target's
    whole sample set and a failed fetch clears it.
    """

    def __init__(self, evict_stale: bool = False):
        self.evict_stale = evict_stale
        self._lock = threading.Lock()
        self._samples: dict[SampleKey, float] = {}
        self._stats: dict[str, TargetStats] = {}

    # ----------------------
    # Writers
    # ----------------------

    def update(self, target: str, statuses: Iterable[NodeStatus]) -> None:
        """Publish the node list fetched from ``target``."""
        with self._lock:
            self._apply_statuses(target, statuses)

    def publish_cycle(self, results: Sequence[ScrapeResult]) -> None:
        """Apply every target's outcome from one cycle under a single lock."""
        now = time.time()
        with self._lock:
            for result in results:
                target = result["target"]
                if result["error"] is None:
                    self._apply_statuses(target, result["statuses"] or [])
                    self._record_success(target, result["duration"], now)
                else:
                    self._record_failure(
                        target,
                        result["error_type"] or "other",
                        result["error"],
                        result["duration"],
                    )

    # ----------------------
    # Readers
    # ----------------------

    def snapshot(self) -> list[GaugeSample]:
        """Return all current samples ordered by metric name, url and node."""
        with self._lock:
            items = sorted(self._samples.items())
        return [
            GaugeSample(name=name, node=node, url=url, value=value)
            for (name, url, node), value in items
        ]

    def target_stats(self) -> dict[str, TargetStats]:
        with self._lock:
            return {
                target: TargetStats(
                    up=stats["up"],
                    last_success=stats["last_success"],
                    last_error=stats["last_error"],
                    duration=stats["duration"],
                    errors=dict(stats["errors"]),
                )
                for target, stats in self._stats.items()
            }

    # ----------------------
    # Internals, caller holds the lock
    # ----------------------

    def _drop_target(self, target: str) -> None:
        for key in [k for k in self._samples if k[1] == target]:
            del self._samples[key]

    def _apply_statuses(self, target: str, statuses: Iterable[NodeStatus]) -> None:
        if self.evict_stale:
            self._drop_target(target)
        for status in statuses:
            node = status["name"]
            self._samples[(ONLINE_STATUS, target, node)] = _flag(not status["offline"])
            if status["temporarily_offline"] is not None:
                self._samples[(TEMPORARILY_OFFLINE_STATUS, target, node)] = _flag(status["temporarily_offline"])

    def _stats_for(self, target: str) -> TargetStats:
        stats = self._stats.get(target)
        if stats is None:
            stats = TargetStats(up=0.0, last_success=0.0, last_error=None, duration=0.0, errors={})
            self._stats[target] = stats
        return stats

    def _record_success(self, target: str, duration: float, now: float) -> None:
        prev_known = target in self._stats
        stats = self._stats_for(target)
        if prev_known and stats["up"] != 1.0:
            logger.info(f"Jenkins {target} came back online")
        stats["up"] = 1.0
        stats["last_success"] = now
        stats["last_error"] = None
        stats["duration"] = duration

    def _record_failure(self, target: str, error_type: str, message: str, duration: float) -> None:
        prev_known = target in self._stats
        stats = self._stats_for(target)
        if prev_known and stats["up"] != 0.0:
            logger.warning(f"Jenkins {target} went offline")
        stats["up"] = 0.0
        stats["last_error"] = message
        stats["duration"] = duration
        stats["errors"][error_type] = stats["errors"].get(error_type, 0.0) + 1.0
        if self.evict_stale:
            self._drop_target(target)
