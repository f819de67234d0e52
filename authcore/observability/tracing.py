"""
Timing and error instrumentation for auth operations.

Orchestration methods open a span explicitly around their body:

```python
with track_operation("auth.login") as span:
    ...
    span.update(user_id=str(user.id))
```

The span measures wall time, logs the outcome once, and records errors
through an explicit call. Expected auth failures are logged at INFO;
anything else is logged as an error with its traceback.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from authcore.core.exceptions import AuthError

logger = logging.getLogger(__name__)


class OperationSpan:
    """Timer plus context for one auth operation."""

    def __init__(self, name: str, **context: Any):
        self.name = name
        self.context: Dict[str, Any] = dict(context)
        self.started_at: Optional[float] = None
        self.duration_ms: Optional[float] = None
        self.outcome = "pending"

    def start(self) -> "OperationSpan":
        self.started_at = time.perf_counter()
        return self

    def stop(self, outcome: str = "success") -> float:
        """Stop the timer and return the duration in milliseconds."""
        if self.started_at is None:
            self.start()
        self.duration_ms = (time.perf_counter() - self.started_at) * 1000
        self.outcome = outcome
        return self.duration_ms

    def update(self, **context: Any) -> None:
        self.context.update(context)

    def record_error(self, error: BaseException) -> None:
        """Log a failure of this operation."""
        details = self._format_context()
        if isinstance(error, AuthError):
            logger.info(
                f"{self.name} rejected: {type(error).__name__} "
                f"({self.duration_ms:.1f}ms){details}"
            )
        else:
            logger.error(
                f"{self.name} failed: {error} ({self.duration_ms:.1f}ms){details}",
                exc_info=error,
            )

    def record_success(self) -> None:
        logger.info(f"{self.name} succeeded ({self.duration_ms:.1f}ms){self._format_context()}")

    def _format_context(self) -> str:
        if not self.context:
            return ""
        return " " + " ".join(f"{k}={v}" for k, v in self.context.items())


@contextmanager
def track_operation(name: str, **context: Any) -> Iterator[OperationSpan]:
    """Time an operation and log its outcome; exceptions propagate unchanged."""
    span = OperationSpan(name, **context).start()
    try:
        yield span
    except Exception as e:
        span.stop(outcome="error")
        span.record_error(e)
        raise
    else:
        span.stop()
        span.record_success()
