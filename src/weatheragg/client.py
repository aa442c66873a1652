# OOP boundary for external i/o
# all http lives here: urls, params, headers, status checks and json decoding
# each thread lazily gets its own session, the aggregator calls fetch() from many threads at once

from __future__ import annotations
import logging
import threading
from typing import Any, Dict, List, Optional
import requests

from . import config
from .errors import UpstreamError
from .models import Location, SearchRequest, Weather, rank_locations

logger = logging.getLogger(__name__)


class UpstreamClient:
    # shared plumbing for the two open-meteo services
    SERVICE = "upstream"
    PATH = "/"

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        user_agent: str = config.USER_AGENT,
    ):
        self.url = base_url.rstrip("/") + self.PATH
        self.timeout = timeout
        self.user_agent = user_agent
        self._local = threading.local()

    def _build_session(self) -> requests.Session:
        s = requests.Session()
        s.headers.update({"User-Agent": self.user_agent})
        return s

    def _session(self) -> requests.Session:
        sess = getattr(self._local, "session", None)
        if sess is None:
            sess = self._build_session()
            self._local.session = sess
        return sess

    def _get_json(self, params: Dict[str, Any]) -> Any:
        logger.debug("GET %s %s", self.url, params)
        try:
            resp = self._session().get(self.url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamError(f"request to {self.SERVICE} failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            # a short snippet of the body is usually enough to see what went wrong
            snippet = (resp.text or "")[:300]
            raise UpstreamError(f"{self.SERVICE} returned status {resp.status_code}. Body: {snippet}")

        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(f"invalid JSON from {self.SERVICE}: {exc}") from exc


class LocationSearchClient(UpstreamClient):
    SERVICE = "geocoding service"
    PATH = "/v1/search"

    def __init__(self, base_url: str = config.GEOCODING_URL, **kwargs):
        super().__init__(base_url, **kwargs)

    def search(self, req: SearchRequest) -> List[Location]:
        params = {
            "name": req.place,
            "count": req.count,
            "language": "en",
            "format": "json",
        }
        data = self._get_json(params)

        try:
            # the service leaves "results" out entirely when nothing matches
            raw_results = data.get("results", [])
            if not isinstance(raw_results, list):
                raise TypeError("results must be a list")
            locations = [Location.from_search_result(item) for item in raw_results]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise UpstreamError(f"unexpected {self.SERVICE} response: {_shape_error(exc)}") from exc

        logger.debug("%d locations for %r", len(locations), req.place)
        return rank_locations(locations)


class WeatherFetcher(UpstreamClient):
    SERVICE = "forecast service"
    PATH = "/v1/forecast"
    CURRENT_FIELDS = "temperature_2m,rain"

    def __init__(self, base_url: str = config.FORECAST_URL, **kwargs):
        super().__init__(base_url, **kwargs)

    def fetch(self, location: Location) -> Weather:
        try:
            return self._fetch(location)
        except UpstreamError as exc:
            raise UpstreamError(f"fetching weather for {location.qualified_name}") from exc

    def _fetch(self, location: Location) -> Weather:
        params = {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "current": self.CURRENT_FIELDS,
        }
        data = self._get_json(params)
        try:
            return Weather.from_forecast(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamError(f"unexpected {self.SERVICE} response: {_shape_error(exc)}") from exc


def _shape_error(exc: Exception) -> str:
    # KeyError's str() is just the quoted key
    if isinstance(exc, KeyError):
        return f"missing field {exc}"
    return str(exc)
