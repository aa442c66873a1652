# verifying gateway: a request is authorized when its Signature header carries
# the hex hmac of the request target (path plus query string), see weatheragg-sign.
# scheme and host are not part of the signed message, so a signature computed over the
# absolute uri (http://host/path?query) is rejected here; sign only the path and query

from __future__ import annotations
import binascii
import logging
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .app import ALL_METHODS, plain_http_errors
from .errors import InputError, MethodError, ServiceError, describe
from .signing import load_secret_key, verify

logger = logging.getLogger(__name__)


class SignatureMismatch(ServiceError):
    status_code = 401


def request_target(request: Request) -> str:
    # the undecoded path as sent by the client, so the signed bytes are the ones we check
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.scope["path"]
    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def check_request(key: bytes, method: str, target: str, signature_header: Optional[str]) -> None:
    # header problems are reported before the method check
    if signature_header is None:
        raise InputError("missing Signature header")
    try:
        signature = binascii.unhexlify(signature_header.strip())
    except (binascii.Error, ValueError) as exc:
        raise InputError(f"Signature header is not hex: {exc}") from exc

    if method != "GET":
        raise MethodError(f"unsupported method {method}")
    if not verify(key, target, signature):
        raise SignatureMismatch("signature does not match request uri")


def create_gateway_app(secret_key: Optional[bytes] = None) -> FastAPI:
    # key is decoded once here, a bad SECRET_KEY fails at startup rather than per request
    key = secret_key if secret_key is not None else load_secret_key()
    app = FastAPI(title="weather-agg gateway", docs_url=None, redoc_url=None, openapi_url=None)
    app.add_exception_handler(StarletteHTTPException, plain_http_errors)

    @app.api_route("/{path:path}", methods=ALL_METHODS)
    def authorize(request: Request) -> PlainTextResponse:
        try:
            check_request(key, request.method, request_target(request), request.headers.get("signature"))
        except ServiceError as exc:
            logger.info("rejected %s %s: %s", request.method, request.url.path, describe(exc))
            return PlainTextResponse(describe(exc), status_code=exc.status_code)
        return PlainTextResponse("authorized")

    return app
