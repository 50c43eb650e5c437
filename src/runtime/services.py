from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import numpy as np

from detection.engine import DetectionEngine, unavailable_result, validate_input
from detection.errors import DetectionError, DetectionUnavailable
from models.config import WorkflowConfig
from models.detection import DetectionResult


@dataclass(frozen=True)
class BatchRow:
    """One claim to verify, e.g. a line from a batch CSV upload."""
    claim_id: str
    sample_id: str
    lat: float
    lon: float
    region: Optional[str] = None


@dataclass
class BatchOutcome:
    """Per-row results of a batch run; failed rows carry their error message."""
    results: List[DetectionResult] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.errors)


class VerificationService:
    """
    Calling workflow around the detection engine.

    - Invalid input is rejected synchronously, before any scoring.
    - DetectionUnavailable is retried with exponential backoff.
    - After the last attempt the claim gets a NOT_VERIFIABLE placeholder
      result so human review can proceed.
    - Every produced result is persisted against its claim.
    """

    def __init__(
        self,
        engine: DetectionEngine,
        db: Any = None,
        workflow: Optional[WorkflowConfig] = None,
        timeout_s: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.engine = engine
        self.db = db
        self.workflow = workflow or WorkflowConfig()
        self.timeout_s = timeout_s
        self._sleep = sleep

    def _backoff_delays(self) -> List[float]:
        """Delays to wait after each failed attempt except the last."""
        attempts = max(1, self.workflow.max_attempts)
        return [
            self.workflow.backoff_s * (self.workflow.backoff_factor ** i)
            for i in range(attempts - 1)
        ]

    def _on_unavailable(self, sample_id: str, attempt: int, attempts: int, error: Exception) -> None:
        if attempt >= attempts:
            logging.error(f"Detection unavailable for {sample_id} after {attempts} attempts: {error}")
        else:
            logging.warning(
                f"Detection unavailable for {sample_id} (attempt {attempt}/{attempts}): {error}"
            )

    def _persist(self, claim_id: str, result: DetectionResult, region: Optional[str]) -> None:
        if self.db is None:
            return
        if not self.db.save_result(claim_id, result, region=region):
            logging.warning(f"Result for claim {claim_id} was not persisted")

    def verify(
        self,
        claim_id: str,
        sample_id: str,
        lat: float,
        lon: float,
        image: Optional[np.ndarray] = None,
        region: Optional[str] = None,
    ) -> DetectionResult:
        """
        Detect, persist and return the result for one claim.

        Raises:
            InvalidInput: malformed sample id or coordinates.
        """
        validate_input(sample_id, lat, lon)
        delays = self._backoff_delays()
        attempts = len(delays) + 1

        result = None
        for attempt in range(1, attempts + 1):
            try:
                result = self.engine.detect(sample_id, lat, lon, image)
                break
            except DetectionUnavailable as e:
                self._on_unavailable(sample_id, attempt, attempts, e)
                if attempt < attempts:
                    self._sleep(delays[attempt - 1])

        if result is None:
            result = unavailable_result(sample_id, lat, lon, source=self.engine.image_source)
        self._persist(claim_id, result, region)
        return result

    async def verify_async(
        self,
        claim_id: str,
        sample_id: str,
        lat: float,
        lon: float,
        image: Optional[np.ndarray] = None,
        region: Optional[str] = None,
    ) -> DetectionResult:
        """
        Async variant of verify(); each attempt is bounded by timeout_s.

        Cancellation of the calling task propagates and nothing is persisted.
        """
        validate_input(sample_id, lat, lon)
        delays = self._backoff_delays()
        attempts = len(delays) + 1

        result = None
        for attempt in range(1, attempts + 1):
            try:
                result = await self.engine.detect_async(
                    sample_id, lat, lon, image, timeout_s=self.timeout_s
                )
                break
            except DetectionUnavailable as e:
                self._on_unavailable(sample_id, attempt, attempts, e)
                if attempt < attempts:
                    await asyncio.sleep(delays[attempt - 1])

        if result is None:
            result = unavailable_result(sample_id, lat, lon, source=self.engine.image_source)
        # sqlite writes block; keep them off the event loop
        await asyncio.to_thread(self._persist, claim_id, result, region)
        return result

    def verify_batch(self, rows: List[BatchRow]) -> BatchOutcome:
        """Verify each row; a bad row is recorded and does not stop the batch."""
        outcome = BatchOutcome()
        for row in rows:
            try:
                outcome.results.append(
                    self.verify(row.claim_id, row.sample_id, row.lat, row.lon, region=row.region)
                )
            except DetectionError as e:
                logging.warning(f"Batch row {row.claim_id} rejected: {e}")
                outcome.errors.append({"claim_id": row.claim_id, "error": str(e)})

        logging.info(f"Batch complete: {outcome.succeeded} verified, {outcome.failed} rejected")
        return outcome
