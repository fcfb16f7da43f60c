from __future__ import annotations

import typing as t

import httpx
import structlog

from checkbatches.config import DEFAULT_OPENAI_BASE_URL
from checkbatches.models import ProviderBatch

log = structlog.get_logger(__name__)


class StatusProber(t.Protocol):
    """Look up the provider-side state of a submitted batch."""

    async def get_status(self, external_reference_id: str) -> ProviderBatch | None: ...


class OpenAIStatusProber:
    """
    Status prober backed by the OpenAI Batch API.

    Parameters
    ----------
    api_key : str
        OpenAI API key.
    base_url : str, optional
        API base URL, including the ``/v1`` prefix.
    timeout_seconds : float, optional
        Timeout applied to each request.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client_factory: t.Callable[[], httpx.AsyncClient] = lambda: httpx.AsyncClient(
            timeout=timeout_seconds
        )

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def get_status(self, external_reference_id: str) -> ProviderBatch | None:
        """
        Retrieve a batch from the provider.

        Parameters
        ----------
        external_reference_id : str
            Provider batch identifier.

        Returns
        -------
        ProviderBatch | None
            The provider batch, or ``None`` when the provider does not know it.

        Raises
        ------
        httpx.HTTPError
            On transport failures and non-404 error responses.
        pydantic.ValidationError
            If the response does not look like a batch object.
        """
        url = f"{self._base_url}/batches/{external_reference_id}"
        async with self._client_factory() as client:
            response = await client.get(url=url, headers=self._headers())
        if response.status_code == httpx.codes.NOT_FOUND:
            log.debug(
                event="Provider batch not found",
                openai_batch_id=external_reference_id,
            )
            return None
        response.raise_for_status()
        if not response.content.strip():
            return None
        payload = response.json()
        if not payload:
            return None
        provider_batch = ProviderBatch.model_validate(payload)
        log.debug(
            event="Provider batch retrieved",
            openai_batch_id=external_reference_id,
            status=provider_batch.status,
        )
        return provider_batch
