"""HTTP client for the external segmented-discount service."""

from __future__ import annotations

from typing import Optional

import requests
import structlog
from django.conf import settings
from pydantic import ValidationError

from modules.discounts.dtos import DiscountQuery, DiscountResult
from modules.discounts.interfaces import IDiscountResolver
from modules.orders.exceptions import ExternalDependencyFailure

logger = structlog.get_logger(__name__)


class SegmentedDiscountClient(IDiscountResolver):
    """POSTs the line context and parses the tier the service applied.

    No zero-discount fallback: any transport error,
    non-2xx status or malformed body becomes ``ExternalDependencyFailure``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or settings.DISCOUNT_SERVICE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.DISCOUNT_SERVICE_TIMEOUT
        self.session = session or requests.Session()

    def resolve(self, query: DiscountQuery) -> DiscountResult:
        log = logger.bind(
            producer_id=str(query.producer_id),
            supplier_id=str(query.supplier_id),
        )
        try:
            response = self.session.post(
                f"{self.base_url}/discounts/resolve",
                json=query.model_dump(mode="json"),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            log.warning("discount.request_failed", error=str(exc))
            raise ExternalDependencyFailure(
                "Discount service is unavailable."
            ) from exc

        if not response.ok:
            log.warning("discount.bad_status", status_code=response.status_code)
            raise ExternalDependencyFailure(
                f"Discount service answered with status {response.status_code}."
            )

        try:
            result = DiscountResult.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            log.warning("discount.malformed_payload", error=str(exc))
            raise ExternalDependencyFailure(
                "Discount service returned an invalid payload."
            ) from exc

        log.info(
            "discount.resolved",
            percentage=str(result.percentage),
            applied_segment=result.applied_segment,
        )
        return result
