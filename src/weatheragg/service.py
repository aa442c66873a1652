# orchestration: search for locations, then fetch the weather for all of them concurrently
# the fan-out/fan-in and its join policy live in Aggregator and nowhere else

from __future__ import annotations
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from . import config
from .client import LocationSearchClient, WeatherFetcher
from .errors import UpstreamError
from .models import Location, ResultItem, SearchRequest, Weather

logger = logging.getLogger(__name__)


class FetchSkipped(RuntimeError):
    # raised in place of a fetch that never started because a sibling already failed
    pass


class Aggregator:
    # one worker per location unless max_workers caps it; the first failure to complete wins
    # and is raised right away. stragglers keep running on their threads and whatever they
    # produce is dropped. with cancel_pending, fetches that have not started yet are skipped.

    def __init__(
        self,
        fetch: Callable[[Location], Weather],
        cancel_pending: bool = False,
        max_workers: Optional[int] = None,
    ):
        self.fetch = fetch
        self.cancel_pending = cancel_pending
        self.max_workers = max_workers

    def aggregate(self, locations: Sequence[Location]) -> List[ResultItem]:
        if not locations:
            return []

        workers = min(len(locations), self.max_workers or len(locations))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="weather-fetch")
        failed = threading.Event()
        slots: List[Optional[ResultItem]] = [None] * len(locations)
        futures = {pool.submit(self._fetch_item, loc, failed): i for i, loc in enumerate(locations)}
        try:
            for fut in as_completed(futures):
                try:
                    # fut.result() re-raises the fetch's exception, which ends the join
                    slots[futures[fut]] = fut.result()
                except FetchSkipped:
                    # the failure that caused the skip is already raised on its worker and completes next
                    continue
        except Exception:
            pending = sum(1 for f in futures if not f.done())
            if pending:
                logger.warning("discarding %d unfinished weather fetches after a failure", pending)
            raise
        finally:
            # never block on stragglers
            pool.shutdown(wait=False, cancel_futures=self.cancel_pending)

        # ranking order, not completion order
        return [item for item in slots if item is not None]

    def _fetch_item(self, location: Location, failed: threading.Event) -> ResultItem:
        if self.cancel_pending and failed.is_set():
            raise FetchSkipped(f"skipped weather for {location.qualified_name}")
        try:
            return ResultItem(location=location, weather=self.fetch(location))
        except Exception:
            # set on the failing worker itself, so the next fetch it picks up already sees it
            failed.set()
            raise


class WeatherSearch:
    # the per-request pipeline: SearchRequest -> ranked locations -> weather for each

    def __init__(self, locations: LocationSearchClient, aggregator: Aggregator):
        self.locations = locations
        self.aggregator = aggregator

    def run(self, req: SearchRequest) -> List[ResultItem]:
        try:
            found = self.locations.search(req)
        except UpstreamError as exc:
            raise UpstreamError("searching for location") from exc

        logger.info("found %d locations for %r (count=%d)", len(found), req.place, req.count)
        return self.aggregator.aggregate(found)


def build_search(
    geocoding_url: str = config.GEOCODING_URL,
    forecast_url: str = config.FORECAST_URL,
    timeout: Optional[float] = None,
    cancel_pending: Optional[bool] = None,
    max_workers: Optional[int] = None,
) -> WeatherSearch:
    # wire the real clients from configuration, explicit arguments win over the environment
    if timeout is None:
        timeout = config.http_timeout()
    if cancel_pending is None:
        cancel_pending = config.cancel_on_failure()
    if max_workers is None:
        max_workers = config.max_workers()
    fetcher = WeatherFetcher(forecast_url, timeout=timeout)
    return WeatherSearch(
        locations=LocationSearchClient(geocoding_url, timeout=timeout),
        aggregator=Aggregator(fetcher.fetch, cancel_pending=cancel_pending, max_workers=max_workers),
    )
