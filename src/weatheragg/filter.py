# filter service: runs one jq program over the json request body and returns its first result
# the program is fixed for the life of the app (WEATHERAGG_JQ_PROGRAM, default ".[]")

from __future__ import annotations
import json
import logging
from typing import Any, Optional
import jq
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .app import ALL_METHODS, plain_http_errors
from .errors import ServiceError, describe

logger = logging.getLogger(__name__)


class FilterError(ServiceError):
    status_code = 500


class FilterProgram:
    # compiled exactly once, when constructed; read-only afterwards so concurrent requests share it.
    # a program that does not compile is kept as the error every request reports

    def __init__(self, source: str):
        self.source = source
        self._compiled = None
        self._compile_error: Optional[ValueError] = None
        try:
            self._compiled = jq.compile(source)
        except ValueError as exc:
            logger.error("jq program %r does not compile: %s", source, exc)
            self._compile_error = exc

    def first(self, value: Any) -> Any:
        if self._compile_error is not None:
            raise FilterError(f"compiling filter {self.source!r}") from self._compile_error
        try:
            return self._compiled.input_value(value).first()
        except StopIteration as exc:
            raise FilterError(f"filter {self.source!r} produced no results") from exc
        except ValueError as exc:
            raise FilterError(f"evaluating filter {self.source!r}") from exc


def run_filter(program: FilterProgram, body: bytes) -> str:
    try:
        value = json.loads(body)
    except ValueError as exc:
        raise FilterError("parsing body json") from exc
    result = program.first(value)
    try:
        return json.dumps(result, allow_nan=False)
    except ValueError as exc:
        raise FilterError("serializing result to json") from exc


def create_filter_app(program: Optional[str] = None) -> FastAPI:
    compiled = FilterProgram(program if program is not None else config.JQ_PROGRAM)
    app = FastAPI(title="weather-agg filter", docs_url=None, redoc_url=None, openapi_url=None)
    app.add_exception_handler(StarletteHTTPException, plain_http_errors)

    @app.api_route("/{path:path}", methods=ALL_METHODS)
    async def apply(request: Request) -> Response:
        body = await request.body()
        try:
            out = run_filter(compiled, body)
        except ServiceError as exc:
            logger.warning("filter failed: %s", describe(exc))
            return PlainTextResponse(describe(exc), status_code=exc.status_code)
        return Response(content=out, media_type="application/json")

    logger.info("filter app ready with program %r", compiled.source)
    return app
