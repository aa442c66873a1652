# turns the raw inbound query string into a SearchRequest

from __future__ import annotations
import re
from typing import Dict, Optional
from urllib.parse import parse_qsl

from . import config
from .errors import InputError
from .models import SearchRequest

MAX_COUNT = 2**32 - 1
_DIGITS = re.compile(r"[0-9]+")


def resolve_query(raw_query: Optional[str], default_place: str = config.DEFAULT_PLACE) -> SearchRequest:
    # no query string at all gets the defaults instead of a 400 on a bare curl
    if not raw_query:
        return SearchRequest(place=default_place, count=config.DEFAULT_COUNT)

    params = _parse_params(raw_query)
    place = params.get("place", default_place)
    count = _parse_count(params["count"]) if "count" in params else config.DEFAULT_COUNT
    if count == 0:
        raise InputError("count must be nonzero")
    return SearchRequest(place=place, count=count)


def _parse_params(raw_query: str) -> Dict[str, str]:
    # empty segments ("a=1&&b=2", trailing "&") are tolerated, anything else must be key=value
    fields = "&".join(f for f in raw_query.split("&") if f)
    if not fields:
        return {}
    try:
        pairs = parse_qsl(fields, keep_blank_values=True, strict_parsing=True)
    except ValueError as exc:
        raise InputError(f"malformed query string: {exc}") from exc

    params: Dict[str, str] = {}
    for key, value in pairs:
        if key in ("place", "count") and key in params:
            raise InputError(f"duplicate query parameter {key!r}")
        params[key] = value
    return params


def _parse_count(raw: str) -> int:
    if not _DIGITS.fullmatch(raw):
        raise InputError(f"count must be an unsigned integer (got {raw!r})")
    count = int(raw)
    if count > MAX_COUNT:
        raise InputError(f"count is out of range (got {raw})")
    return count
