from __future__ import annotations

import structlog

from checkbatches.limiter import ConcurrencyLimiter
from checkbatches.models import Batch
from checkbatches.prober import StatusProber
from checkbatches.utils.logging import logging_context

log = structlog.get_logger(__name__)


class BatchReconciler:
    """
    Decide which waiting batches reached a terminal provider state.

    Parameters
    ----------
    prober : StatusProber
        Provider status lookup, shared by all checks.
    limiter : ConcurrencyLimiter
        Gate bounding the number of probes in flight.
    """

    def __init__(self, *, prober: StatusProber, limiter: ConcurrencyLimiter) -> None:
        self._prober = prober
        self._limiter = limiter

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    async def check_batch(self, batch: Batch) -> Batch | None:
        """
        Probe a batch and return it when it should be announced.

        Parameters
        ----------
        batch : Batch
            Batch selected while in the ``Waiting`` status.

        Returns
        -------
        Batch | None
            The batch when its provider status is terminal, ``None`` when it has
            no provider reference, is unknown to the provider, is still running,
            or could not be probed.
        """
        with logging_context(batch_id=batch.id):
            log.debug(event="Waiting to check batch")
            async with self._limiter.slot():
                log.info(event="Starting to check batch")
                return await self._probe(batch=batch)

    async def _probe(self, *, batch: Batch) -> Batch | None:
        reference_id = batch.external_reference_id
        if reference_id is None:
            log.warning(event="Batch has no associated OpenAI batch id, aborting")
            return None

        try:
            provider_batch = await self._prober.get_status(reference_id)
        except Exception as error:
            log.error(
                event="Failed to retrieve batch status, skipping for this run",
                openai_batch_id=reference_id,
                error_type=type(error).__name__,
                error=str(object=error),
            )
            return None

        if provider_batch is None:
            log.warning(
                event="Retrieved no data from OpenAI API, aborting",
                openai_batch_id=reference_id,
            )
            return None

        if not provider_batch.is_terminal:
            log.info(
                event="Batch status is not a completed state, skipping",
                openai_batch_id=reference_id,
                status=provider_batch.status,
            )
            return None

        log.info(
            event="Batch status is a completed state, returning",
            openai_batch_id=reference_id,
            status=provider_batch.status,
        )
        return batch
