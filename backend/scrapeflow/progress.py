"""Progress reporting between the engine and an external sink.

The sink is any callable ``(job_id, percent, status, item_count=None)``,
sync or async. Errors raised by the sink are logged and never fail a job.
"""

import inspect
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

# Status values
STARTED = "started"
STRATEGY_SELECTED = "strategy_selected"
EXECUTING = "executing"
RESULT_AVAILABLE = "result_available"
ESCALATING = "escalating"
COMPLETED = "completed"
FAILED = "failed"

ProgressSink = Callable[..., Any]


def logging_sink(job_id: Optional[str], percent: int, status: str, item_count: Optional[int] = None) -> None:
    """Default sink: one structured log line per checkpoint."""
    logger.info("job_progress", job_id=job_id, percent=percent, status=status, item_count=item_count)


class ProgressEmitter:
    """Forwards engine checkpoints to the configured sink."""

    def __init__(self, sink: Optional[ProgressSink] = None):
        self._sink = sink or logging_sink

    async def emit(
        self,
        job_id: Optional[str],
        percent: int,
        status: str,
        item_count: Optional[int] = None,
    ) -> None:
        try:
            result = self._sink(job_id, percent, status, item_count)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(
                "progress_sink_failed",
                job_id=job_id,
                percent=percent,
                status=status,
                error=str(e),
            )
