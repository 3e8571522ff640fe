"""Translate ``ServiceResult`` objects into DRF responses.

Failure codes map to HTTP statuses; successful values are dumped through
Pydantic so Decimal/UUID/datetime render as JSON strings.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from rest_framework import status
from rest_framework.response import Response

from shared.application.result import ServiceResult

ERROR_STATUS: dict[str, int] = {
    "invalid_input": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_state": status.HTTP_409_CONFLICT,
    "empty_order": status.HTTP_409_CONFLICT,
    "over_allocation": status.HTTP_409_CONFLICT,
    "concurrency_conflict": status.HTTP_409_CONFLICT,
    "external_dependency": status.HTTP_502_BAD_GATEWAY,
    "internal_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [dump(v) for v in value]
    return value


def result_response(result: ServiceResult, success_status: int = status.HTTP_200_OK) -> Response:
    if result.ok:
        return Response(dump(result.value), status=success_status)
    return Response(
        {"code": result.code, "detail": result.message},
        status=ERROR_STATUS.get(result.code or "", status.HTTP_400_BAD_REQUEST),
    )
