"""
Poll scheduling: one cycle fetches every target and publishes the results.
"""
import logging
import threading
import time
from collections.abc import Callable, Sequence

from jenkins_exporter.fetcher import NodeStatus, categorize_error
from jenkins_exporter.publisher import MetricPublisher, ScrapeResult

logger = logging.getLogger(__name__)

FetchFunc = Callable[[str], list[NodeStatus]]


def scrape_target(target: str, fetch: FetchFunc) -> ScrapeResult:
    """Fetch one target. Never raises; failures are returned in the result."""
    scrape_start = time.time()
    try:
        statuses = fetch(target)
    except Exception as e:
        duration = time.time() - scrape_start
        error_type = categorize_error(e)
        logger.warning(f"Failed to scrape {target} ({error_type}): {e} (duration: {duration:.3f}s)")
        return ScrapeResult(target=target, statuses=None, error=str(e), error_type=error_type, duration=duration)

    duration = time.time() - scrape_start
    logger.debug(f"Scraped {target} successfully in {duration:.3f}s ({len(statuses)} node(s))")
    return ScrapeResult(target=target, statuses=statuses, error=None, error_type=None, duration=duration)


def run_cycle(targets: Sequence[str], publisher: MetricPublisher, fetch: FetchFunc) -> list[ScrapeResult]:
    """
    Scrape all targets in parallel, wait for every one of them, then publish
    the whole cycle at once.
    """
    loop_start = time.time()
    results: list[ScrapeResult | None] = [None] * len(targets)

    def worker(index: int, target: str) -> None:
        results[index] = scrape_target(target, fetch)

    threads: list[threading.Thread] = []
    for index, target in enumerate(targets):
        thread = threading.Thread(
            target=worker,
            args=(index, target),
            name=f"scraper-{index}",
        )
        thread.start()
        threads.append(thread)

    for thread in threads:
        thread.join()

    completed = [r for r in results if r is not None]
    publisher.publish_cycle(completed)

    loop_duration = time.time() - loop_start
    failed = sum(1 for r in completed if r["error"] is not None)
    logger.debug(
        f"Completed scrape cycle for {len(targets)} target(s) in {loop_duration:.3f}s "
        f"({failed} failed)"
    )
    return completed


class Poller:
    """
    Background polling thread.

    ``start()`` runs a cycle immediately and then one every ``poll_delay``
    seconds, measured start to start. ``stop()`` asks the loop to exit; an
    in-flight cycle is allowed to finish. Without ``stop()`` the poller runs
    until the process ends.
    """

    def __init__(
        self,
        targets: Sequence[str],
        publisher: MetricPublisher,
        fetch: FetchFunc,
        poll_delay: float,
    ):
        self.targets = list(targets)
        self.publisher = publisher
        self.fetch = fetch
        self.poll_delay = poll_delay
        self.heartbeat = 0.0
        self.cycles = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("poller already started")
        # non-daemon so shutdown can wait for the current cycle
        self._thread = threading.Thread(target=self.run, name="poller")
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the thread; returns True if it has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def run(self) -> None:
        logger.info(f"Poller loop started, monitoring {len(self.targets)} Jenkins target(s) in parallel")

        while not self._stop.is_set():
            self.heartbeat = time.time()
            loop_start = time.time()

            run_cycle(self.targets, self.publisher, self.fetch)
            self.cycles += 1

            remaining = self.poll_delay - (time.time() - loop_start)
            if remaining > 0:
                self._stop.wait(remaining)

        logger.info("Poller loop stopped (shutdown requested)")
