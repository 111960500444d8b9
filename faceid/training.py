"""Bounded polling loop that retrains the person group after enrollment changes."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .face_service import FaceService
from .gateway import TrainingStatus

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrainPolicy:
    """Polling budget for :class:`Retrainer`.

    The first status poll is immediate. The delay before each later poll starts
    at ``poll_interval`` and grows by ``backoff`` up to ``max_interval``; after
    ``max_polls`` status calls without a terminal answer the retrain is reported
    as failed.
    """

    poll_interval: float = 1.0
    max_polls: int = 60
    backoff: float = 1.5
    max_interval: float = 10.0

    def delays(self):
        delay = max(0.0, self.poll_interval)
        for _ in range(max(1, self.max_polls) - 1):
            yield delay
            delay = min(self.max_interval, delay * max(1.0, self.backoff))


class Retrainer:
    def __init__(self, faces: FaceService, policy: RetrainPolicy | None = None) -> None:
        self._faces = faces
        self._policy = policy or RetrainPolicy()

    @property
    def policy(self) -> RetrainPolicy:
        return self._policy

    async def retrain(self) -> bool:
        """Start training and poll until it succeeds, fails, or the budget runs out."""

        start = await self._faces.start_training()
        if not start.successful:
            _LOGGER.error("API error occurred when starting training")
            return False

        delays = self._policy.delays()
        for attempt in range(max(1, self._policy.max_polls)):
            if attempt:
                await asyncio.sleep(next(delays))
            call = await self._faces.training_status()
            status = call.result
            _LOGGER.debug("Training status = %s", status.value)
            if call.successful and status is TrainingStatus.SUCCEEDED:
                return True
            if not call.successful or status.is_terminal:
                _LOGGER.error("API error occurred when checking training status (%s)", status.value)
                return False
            _LOGGER.info("Checking training status...")

        _LOGGER.error("Training did not finish after %d status checks", self._policy.max_polls)
        return False


__all__ = ["RetrainPolicy", "Retrainer"]
