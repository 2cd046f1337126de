"""
Generation Client -- one call to the external generation service per customer.

Contract:
    ``generate(customer, flags, period)`` returns a ``GeneratedDataset`` or
    raises a ``GenerationError`` subclass.  Content is not deterministic;
    only the choice of sections (the flags) is.

    Request:  {customerId, name, segment, sector, flags: {...}, period}
    Response: {summary?, detail?, channelA?, channelB?, collateral?}
    An absent key means "not generated", not "empty".

Non-goals:
    - Does NOT retry.  Rate limiting is handled by the controller's fixed
      inter-item delay and single-flight worker.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import InvalidOperation
from typing import Any, Protocol, runtime_checkable

import httpx

from datagen_batch.domain.records import GeneratedDataset
from datagen_batch.domain.types import CustomerDescriptor, GenerationFlags
from datagen_kernel.exceptions import (
    GenerationQuotaExceededError,
    GenerationRateLimitedError,
    GenerationTimeoutError,
    GenerationUpstreamError,
    MalformedGenerationResponseError,
)
from datagen_kernel.logging_config import get_logger

logger = get_logger("batch.generation_client")

MAX_ERROR_DETAIL_CHARS = 500


@runtime_checkable
class GenerationClient(Protocol):
    def generate(
        self,
        customer: CustomerDescriptor,
        flags: GenerationFlags,
        period: str,
    ) -> GeneratedDataset: ...


def build_request(
    customer: CustomerDescriptor,
    flags: GenerationFlags,
    period: str,
) -> dict[str, Any]:
    return {
        "customerId": customer.customer_id,
        "name": customer.name,
        "segment": customer.segment,
        "sector": customer.sector,
        "flags": flags.to_wire(),
        "period": period,
    }


def ensure_own_bank(dataset: GeneratedDataset, own_bank_code: str) -> GeneratedDataset:
    """Guarantee the summary lists the own bank.

    If no summary row is flagged as the own bank, the first row becomes the
    own bank under ``own_bank_code``.
    """
    if not dataset.summary:
        return dataset
    if any(row.our_bank_flag for row in dataset.summary):
        return dataset
    first = replace(dataset.summary[0], our_bank_flag=True, bank_code=own_bank_code)
    return replace(dataset, summary=(first,) + dataset.summary[1:])


class HttpGenerationClient:
    """Synchronous httpx client for the generation service.

    Usable as a context manager; owns its ``httpx.Client`` unless one is
    injected (tests pass a client built on ``httpx.MockTransport``).
    """

    def __init__(
        self,
        endpoint_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 120.0,
        own_bank_code: str = "A",
        client: httpx.Client | None = None,
    ):
        self.endpoint_url = endpoint_url
        self.timeout_seconds = timeout_seconds
        self.own_bank_code = own_bank_code
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_seconds, trust_env=False)

    def __enter__(self) -> HttpGenerationClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def generate(
        self,
        customer: CustomerDescriptor,
        flags: GenerationFlags,
        period: str,
    ) -> GeneratedDataset:
        customer_id = customer.customer_id
        payload = build_request(customer, flags, period)

        try:
            response = self._client.post(
                self.endpoint_url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise GenerationTimeoutError(customer_id, self.timeout_seconds) from exc
        except httpx.RequestError as exc:
            raise GenerationUpstreamError(
                customer_id, f"{type(exc).__name__}: {exc}",
            ) from exc

        if response.status_code == 429:
            raise GenerationRateLimitedError(customer_id)
        if response.status_code == 402:
            raise GenerationQuotaExceededError(customer_id)
        if response.status_code >= 400:
            raise GenerationUpstreamError(
                customer_id,
                _error_detail(response),
                status_code=response.status_code,
            )

        # ValueError covers both invalid JSON and undecodable bytes
        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedGenerationResponseError(
                customer_id,
                f"body is not JSON: {response.text[:MAX_ERROR_DETAIL_CHARS]}",
            ) from exc

        try:
            dataset = GeneratedDataset.from_wire(body)
        except (KeyError, ValueError, TypeError, OverflowError, InvalidOperation) as exc:
            raise MalformedGenerationResponseError(
                customer_id, f"{type(exc).__name__}: {exc}",
            ) from exc

        dataset = ensure_own_bank(dataset, self.own_bank_code)

        logger.debug(
            "generation_response_parsed",
            extra={
                "customer_id": customer_id,
                "period": period,
                "sections": [s.value for s in dataset.present_sections()],
            },
        )
        return dataset


def _error_detail(response: httpx.Response) -> str:
    """Prefer the service's ``{"error": ...}`` message over the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:MAX_ERROR_DETAIL_CHARS]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])[:MAX_ERROR_DETAIL_CHARS]
    return response.text[:MAX_ERROR_DETAIL_CHARS]
