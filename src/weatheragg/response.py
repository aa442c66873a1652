# maps a pipeline outcome to status, body and content type
# status comes from the error kind found in the causal chain, 500 when none declares one

from __future__ import annotations
import json
from dataclasses import dataclass
from typing import List, Union

from .errors import InternalError, describe, status_for
from .models import ResultItem

JSON = "application/json"
TEXT = "text/plain; charset=utf-8"


@dataclass(frozen=True)
class Reply:
    status_code: int
    body: str
    media_type: str


def to_response(result: Union[List[ResultItem], BaseException]) -> Reply:
    if isinstance(result, BaseException):
        # demo service: the full chain goes back to the caller, a hardened deployment would log it instead
        return Reply(status_for(result), describe(result), TEXT)
    try:
        body = _serialize(result)
    except InternalError as exc:
        return to_response(exc)
    return Reply(200, body, JSON)


def _serialize(items: List[ResultItem]) -> str:
    try:
        return json.dumps([item.to_dict() for item in items], allow_nan=False)
    except ValueError as exc:
        raise InternalError("serializing result to json") from exc
