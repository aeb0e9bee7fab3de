import random
import uuid
from typing import Optional

from .models import DispatchLog, DispatchRule, IngestRequest

SUCCESS_BODY = '{"status": "ok"}'
FAILURE_BODY = '{"error": "upstream service unavailable"}'


class DispatchSimulator:
    """Synthesizes dispatch outcomes instead of calling the downstream target.

    Every random draw comes from the injected generator, so two simulators
    seeded alike produce identical logs for identical inputs.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        success_rate: float = 2 / 3,
        execution_time_min_ms: int = 150,
        execution_time_max_ms: int = 500,
        processing_offset_ms: int = 50,
        completion_jitter_ms: int = 200,
    ):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be within [0, 1]")
        if execution_time_max_ms <= execution_time_min_ms:
            raise ValueError("execution_time_max_ms must exceed execution_time_min_ms")
        self.rng = rng or random.Random()
        self.success_rate = success_rate
        self.execution_time_min_ms = execution_time_min_ms
        self.execution_time_max_ms = execution_time_max_ms
        self.processing_offset_ms = processing_offset_ms
        self.completion_jitter_ms = completion_jitter_ms

    def simulate(self, request: IngestRequest, rule: DispatchRule) -> DispatchLog:
        log_id = str(uuid.UUID(int=self.rng.getrandbits(128), version=4))
        succeeded = self.rng.random() < self.success_rate

        if succeeded:
            retry_attempts = 0
        else:
            # attempts consumed before giving up, always short of the budget
            retry_attempts = self.rng.randrange(rule.retry_count) if rule.retry_count > 0 else 0

        completed_at = (
            request.timestamp
            + self.processing_offset_ms
            + self.rng.randint(0, self.completion_jitter_ms)
        )
        execution_time = self.rng.randrange(
            self.execution_time_min_ms, self.execution_time_max_ms
        )

        return DispatchLog(
            id=log_id,
            ingest_request_id=request.id,
            rule_id=rule.id,
            rule_name=rule.name,
            target_url=rule.target_url,
            status="SUCCESS" if succeeded else "FAILED",
            status_code=200 if succeeded else 502,
            retry_attempts=retry_attempts,
            response_body=SUCCESS_BODY if succeeded else FAILURE_BODY,
            timestamp=completed_at,
            execution_time=execution_time,
        )
