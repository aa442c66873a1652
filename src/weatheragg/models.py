# models and the decoders that turn provider payloads into them
# decoders raise KeyError/TypeError/ValueError on shape mismatch, the client layer wraps those

from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

ADMIN_LEVELS = ("admin4", "admin3", "admin2")  # most specific first, admin1 always closes the name


@dataclass(frozen=True)
class SearchRequest:
    place: str
    count: int = 10


@dataclass(frozen=True)
class Location:
    name: str
    qualified_name: str
    population: Optional[int]
    latitude: float
    longitude: float

    @classmethod
    def from_search_result(cls, item: Mapping[str, Any]) -> "Location":
        # geocoding shape: {name, latitude, longitude, population?, admin1, admin2?, admin3?, admin4?}
        if not isinstance(item, Mapping):
            raise TypeError(f"search result must be an object, got {type(item).__name__}")
        return cls(
            name=_string(item, "name"),
            qualified_name=qualified_name(item),
            population=_population(item),
            latitude=_number(item, "latitude"),
            longitude=_number(item, "longitude"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Weather:
    temperature: float
    temperature_unit: str
    rain: float
    rain_unit: str

    @classmethod
    def from_forecast(cls, data: Mapping[str, Any]) -> "Weather":
        # forecast shape: {current_units: {temperature_2m, rain}, current: {temperature_2m, rain}}
        if not isinstance(data, Mapping):
            raise TypeError(f"forecast must be an object, got {type(data).__name__}")
        units = data["current_units"]
        current = data["current"]
        if not isinstance(units, Mapping) or not isinstance(current, Mapping):
            raise TypeError("current and current_units must be objects")
        return cls(
            temperature=_number(current, "temperature_2m"),
            temperature_unit=_string(units, "temperature_2m"),
            rain=_number(current, "rain"),
            rain_unit=_string(units, "rain"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ResultItem:
    location: Location
    weather: Weather

    def to_dict(self) -> Dict[str, Any]:
        return {"location": self.location.to_dict(), "weather": self.weather.to_dict()}


def qualified_name(item: Mapping[str, Any]) -> str:
    # "admin4, admin3, admin2, admin1", skipping whichever of 2..4 are missing
    parts = []
    for level in ADMIN_LEVELS:
        value = item.get(level)
        if value is not None:
            if not isinstance(value, str):
                raise TypeError(f"{level} must be a string")
            parts.append(value)
    parts.append(_string(item, "admin1"))
    return ", ".join(parts)


def rank_locations(locations: Sequence[Location]) -> List[Location]:
    # population descending, unknown population last; sorted() is stable so ties keep upstream order
    return sorted(
        locations,
        key=lambda loc: (loc.population is None, -(loc.population or 0)),
    )


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _number(data: Mapping[str, Any], key: str) -> float:
    value = data[key]
    # bool is an int subclass, json true/false is not a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}")
    return float(value)


def _population(data: Mapping[str, Any]) -> Optional[int]:
    value = data.get("population")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"population must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"population must be non-negative, got {value}")
    return value
