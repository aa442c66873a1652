# error kinds raised by the pipeline stages
# each kind declares the http status it maps to, only the top-level handler reads it

from __future__ import annotations
from typing import List, Optional


class ServiceError(RuntimeError):
    status_code = 500


class InputError(ServiceError):
    # malformed or invalid query parameters
    status_code = 400


class MethodError(ServiceError):
    status_code = 405


class UpstreamError(ServiceError):
    # geocoding or forecast call failed, or returned something we can't decode
    status_code = 500


class InternalError(ServiceError):
    status_code = 500


def causal_chain(exc: BaseException) -> List[BaseException]:
    # outermost first, following explicit `raise ... from` links
    chain: List[BaseException] = []
    current: Optional[BaseException] = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__
    return chain


def status_for(exc: BaseException) -> int:
    for err in causal_chain(exc):
        if isinstance(err, ServiceError):
            return err.status_code
    return 500


def describe(exc: BaseException) -> str:
    parts = []
    for err in causal_chain(exc):
        text = str(err) or type(err).__name__
        parts.append(text)
    return ": ".join(parts)
