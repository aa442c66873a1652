# http surface of the aggregation service
# GET /?place=<name>&count=<n> -> json array of {location, weather}

from __future__ import annotations
import logging
from typing import Optional
from fastapi import FastAPI, Request, Response
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .errors import MethodError, ServiceError, describe
from .query import resolve_query
from .response import Reply, to_response
from .service import WeatherSearch, build_search

logger = logging.getLogger(__name__)

# every method is routed here so non-GET gets our 405 body rather than the framework's
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def handle(
    method: str,
    raw_query: Optional[str],
    search: WeatherSearch,
    default_place: str = config.DEFAULT_PLACE,
) -> Reply:
    # the one place where failures become statuses
    try:
        if method != "GET":
            raise MethodError(f"unsupported method {method}")
        req = resolve_query(raw_query, default_place=default_place)
        items = search.run(req)
    except ServiceError as exc:
        logger.warning("request failed (%d): %s", exc.status_code, describe(exc))
        return to_response(exc)
    except Exception as exc:
        logger.exception("unexpected error while handling request")
        return to_response(exc)
    return to_response(items)


async def plain_http_errors(request: Request, exc: StarletteHTTPException) -> Response:
    # methods outside ALL_METHODS never reach a route, answer them like handle() would
    if exc.status_code == 405:
        return PlainTextResponse(f"unsupported method {request.method}", status_code=405, headers=exc.headers)
    return await http_exception_handler(request, exc)


def create_app(
    search: Optional[WeatherSearch] = None,
    default_place: str = config.DEFAULT_PLACE,
) -> FastAPI:
    search = search or build_search()
    app = FastAPI(
        title="weather-agg",
        description="Current weather for every place matching a name",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_exception_handler(StarletteHTTPException, plain_http_errors)

    # plain def: runs on the server's threadpool, the pipeline blocks on its own http calls.
    # every path is served, only the query string matters
    @app.api_route("/{path:path}", methods=ALL_METHODS)
    def weather(request: Request) -> Response:
        reply = handle(request.method, request.url.query, search, default_place)
        return Response(content=reply.body, status_code=reply.status_code, media_type=reply.media_type)

    logger.info("weather-agg app ready (default place %r)", default_place)
    return app
