# fan-out/fan-in behaviour of the aggregator and the pipeline around it
# fetches are plain callables here so timing can be controlled with events

import threading

import pytest

from conftest import FakeResponse, FakeSession, attach
from weatheragg.client import LocationSearchClient, WeatherFetcher
from weatheragg.errors import UpstreamError
from weatheragg.models import Location, SearchRequest, Weather
from weatheragg.service import Aggregator, WeatherSearch, build_search

WAIT = 5.0


def loc(name, population=None):
    return Location(name=name, qualified_name=f"{name}, Somewhere", population=population, latitude=1.0, longitude=2.0)


def weather_for(location):
    return Weather(temperature=float(len(location.name)), temperature_unit="°C", rain=0.0, rain_unit="mm")


def test_empty_input_runs_nothing():
    def fetch(location):
        raise AssertionError("no fetch expected")

    assert Aggregator(fetch).aggregate([]) == []


def test_results_follow_input_order_not_completion_order():
    second_done = threading.Event()

    def fetch(location):
        if location.name == "first":
            # finish only after the second one has
            assert second_done.wait(WAIT)
        else:
            second_done.set()
        return weather_for(location)

    locations = [loc("first", 900), loc("second", 100)]
    items = Aggregator(fetch).aggregate(locations)

    assert [i.location for i in items] == locations
    assert items[0].weather == weather_for(locations[0])


def test_one_failure_fails_the_whole_aggregate():
    def fetch(location):
        if location.name == "second":
            raise UpstreamError(f"fetching weather for {location.qualified_name}")
        return weather_for(location)

    with pytest.raises(UpstreamError, match="second, Somewhere"):
        Aggregator(fetch).aggregate([loc("first", 2), loc("second", 1)])


def test_failure_returns_without_waiting_for_stragglers():
    release = threading.Event()
    straggler_done = threading.Event()

    def fetch(location):
        if location.name == "slow":
            release.wait(WAIT)
            straggler_done.set()
            return weather_for(location)
        raise UpstreamError("fast failure")

    with pytest.raises(UpstreamError, match="fast failure"):
        Aggregator(fetch).aggregate([loc("slow"), loc("bad")])

    # the slow fetch is still in flight after the aggregate already failed
    assert not straggler_done.is_set()
    release.set()
    # and it is allowed to run to completion in the background
    assert straggler_done.wait(WAIT)


def test_first_failure_to_complete_wins():
    release = threading.Event()

    def fetch(location):
        if location.name == "early":
            raise UpstreamError("early failure")
        release.wait(WAIT)
        raise UpstreamError("late failure")

    # "late" is first in ranking order but fails second
    with pytest.raises(UpstreamError, match="early failure"):
        Aggregator(fetch).aggregate([loc("late"), loc("early")])
    release.set()


def test_fetches_run_concurrently():
    # every fetch waits for all the others, which only works if they overlap
    barrier = threading.Barrier(4, timeout=WAIT)

    def fetch(location):
        barrier.wait()
        return weather_for(location)

    items = Aggregator(fetch).aggregate([loc(str(i)) for i in range(4)])
    assert len(items) == 4


def test_unexpected_errors_propagate_unchanged():
    def fetch(location):
        raise ZeroDivisionError("bug")

    with pytest.raises(ZeroDivisionError):
        Aggregator(fetch, cancel_pending=True).aggregate([loc("a")])


class Recorder:
    # "bad" fails at once, everything else records that its fetch ran
    def __init__(self):
        self.ran = []
        self.lock = threading.Lock()
        self.all_ran = threading.Event()
        self.expected = 0

    def __call__(self, location):
        if location.name == "bad":
            raise UpstreamError("bad gateway")
        with self.lock:
            self.ran.append(location.name)
            if len(self.ran) == self.expected:
                self.all_ran.set()
        return weather_for(location)


def stragglers():
    return [loc("bad")] + [loc(f"s{i}") for i in range(5)]


def test_queued_fetches_still_run_after_failure_by_default():
    fetch = Recorder()
    fetch.expected = 5

    with pytest.raises(UpstreamError, match="bad gateway"):
        Aggregator(fetch, max_workers=1).aggregate(stragglers())

    # they finish in the background, their results are dropped
    assert fetch.all_ran.wait(WAIT)
    assert sorted(fetch.ran) == ["s0", "s1", "s2", "s3", "s4"]


def test_cancel_pending_skips_fetches_that_have_not_started():
    fetch = Recorder()

    with pytest.raises(UpstreamError, match="bad gateway"):
        Aggregator(fetch, cancel_pending=True, max_workers=1).aggregate(stragglers())

    # let the single worker drain whatever it had already dequeued
    threading.Event().wait(0.2)
    assert fetch.ran == []


def test_skipped_fetches_never_mask_the_real_failure():
    # two workers: the second may pick up a skip before the failure is collected
    for _ in range(20):
        with pytest.raises(UpstreamError, match="bad gateway"):
            Aggregator(Recorder(), cancel_pending=True, max_workers=2).aggregate(stragglers())


def test_max_workers_caps_the_pool_without_changing_order():
    items = Aggregator(weather_for, max_workers=2).aggregate([loc("a", 3), loc("b", 2), loc("c", 1)])
    assert [i.location.name for i in items] == ["a", "b", "c"]


class StubLocations:
    def __init__(self, result):
        self.result = result
        self.requests = []

    def search(self, req):
        self.requests.append(req)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def test_pipeline_searches_then_aggregates():
    locations = StubLocations([loc("big", 10), loc("small", 1)])
    search = WeatherSearch(locations, Aggregator(weather_for))

    items = search.run(SearchRequest(place="big", count=2))

    assert locations.requests == [SearchRequest(place="big", count=2)]
    assert [i.location.name for i in items] == ["big", "small"]


def test_pipeline_wraps_geocoding_failure():
    search = WeatherSearch(StubLocations(UpstreamError("geocoding service returned status 503")), Aggregator(weather_for))

    with pytest.raises(UpstreamError, match="searching for location") as info:
        search.run(SearchRequest(place="x", count=1))
    assert "status 503" in str(info.value.__cause__)


def test_pipeline_end_to_end_with_fake_sessions(search_payload, forecast_payload):
    search = build_search("http://geo.test", "http://forecast.test", cancel_pending=False)
    attach(search.locations, FakeSession(lambda url, params: FakeResponse(payload=search_payload)))
    attach(search.aggregator.fetch.__self__, FakeSession(lambda url, params: FakeResponse(payload=forecast_payload)))

    first = search.run(SearchRequest(place="Portland", count=2))
    second = search.run(SearchRequest(place="Portland", count=2))

    assert [i.location.population for i in first] == [650000, 68000]
    # stable upstream, identical ordered output
    assert first == second


def test_build_search_wires_real_clients():
    search = build_search("http://geo.test", "http://forecast.test", timeout=3.0, cancel_pending=True, max_workers=4)
    assert isinstance(search.locations, LocationSearchClient)
    assert search.locations.url == "http://geo.test/v1/search"
    assert search.locations.timeout == 3.0
    assert isinstance(search.aggregator.fetch.__self__, WeatherFetcher)
    assert search.aggregator.cancel_pending is True
    assert search.aggregator.max_workers == 4
