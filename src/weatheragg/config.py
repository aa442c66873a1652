# runtime settings, all read from the environment
# a local .env file is picked up for development; deployments inject real variables

from __future__ import annotations
import logging
import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

GEOCODING_URL = os.getenv("WEATHERAGG_GEOCODING_URL", "https://geocoding-api.open-meteo.com")
FORECAST_URL = os.getenv("WEATHERAGG_FORECAST_URL", "https://api.open-meteo.com")
USER_AGENT = os.getenv("WEATHERAGG_USER_AGENT", "weather-agg/0.1 (open-meteo aggregation demo)")

DEFAULT_PLACE = os.getenv("WEATHERAGG_DEFAULT_PLACE", "Portland")
DEFAULT_COUNT = 10

HOST = os.getenv("WEATHERAGG_HOST", "127.0.0.1")
PORT = int(os.getenv("WEATHERAGG_PORT", "8000"))
LOG_LEVEL = os.getenv("WEATHERAGG_LOG_LEVEL", "INFO").upper()

# hex encoded key for the signing cli and the verifying gateway
SECRET_KEY = os.getenv("SECRET_KEY", "12345678")

# jq program run by the filter service, compiled once when its app is built
JQ_PROGRAM = os.getenv("WEATHERAGG_JQ_PROGRAM", ".[]")


def http_timeout() -> Optional[float]:
    # unset means no timeout, which is the requests default
    raw = os.getenv("WEATHERAGG_HTTP_TIMEOUT")
    if not raw:
        return None
    return float(raw)


def cancel_on_failure() -> bool:
    return os.getenv("WEATHERAGG_CANCEL_ON_FAILURE", "0") == "1"


def max_workers() -> Optional[int]:
    # unset means one fetch thread per location
    raw = os.getenv("WEATHERAGG_MAX_WORKERS")
    if not raw:
        return None
    workers = int(raw)
    if workers < 1:
        raise ValueError(f"WEATHERAGG_MAX_WORKERS must be at least 1 (got {raw})")
    return workers


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
