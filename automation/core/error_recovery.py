"""Retry policy for action handlers and component health checks."""

import asyncio
import time
import random
from typing import Callable, Any, Optional, Dict, List, Type
from datetime import datetime

from .exceptions import ActionExecutionError, ActionTimeoutError, UnknownActionType
from .logging import get_logger, RetryLogger


logger = get_logger(__name__)


class RetryConfig:
    """Configuration for retry behavior.

    The default of a single attempt means no retry at all; callers opt in by
    raising ``max_attempts``.
    """

    def __init__(
        self,
        max_attempts: int = 1,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        retryable_exceptions: Optional[List[Type[Exception]]] = None
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retryable_exceptions = retryable_exceptions or [ActionExecutionError]

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if an exception should be retried."""
        if attempt >= self.max_attempts:
            return False

        # Timeouts and unknown kinds are final.
        if isinstance(exception, (ActionTimeoutError, UnknownActionType)):
            return False

        if isinstance(exception, ActionExecutionError) and not exception.recoverable:
            return False

        return any(isinstance(exception, exc_type) for exc_type in self.retryable_exceptions)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for the given attempt."""
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            delay *= (0.5 + random.random() * 0.5)

        return delay


NO_RETRY = RetryConfig()


def execute_with_retry(func: Callable, config: RetryConfig, operation: str,
                       sleep: Callable[[float], None] = time.sleep) -> Any:
    """Call ``func`` until it succeeds or the retry policy gives up."""
    retry_logger = RetryLogger(operation)

    for attempt in range(1, config.max_attempts + 1):
        try:
            result = func()
            if attempt > 1:
                retry_logger.recovered(attempt)
            return result
        except Exception as e:
            if not config.should_retry(e, attempt):
                if config.max_attempts > 1:
                    retry_logger.gave_up(e, attempt)
                raise

            retry_logger.attempt_failed(e, attempt, config.max_attempts)
            sleep(config.get_delay(attempt))

    # should_retry returns False on the last attempt, so the loop always exits via return or raise
    raise RuntimeError(f"Retry loop for {operation} exited without a result")


class HealthChecker:
    """Runs named component checks; a check passes when it returns without raising.

    Sync checks run in a worker thread so a slow database ping cannot block
    the event loop. Returning a dict merges it into the check's result.
    """

    def __init__(self):
        self.checks: Dict[str, Dict[str, Any]] = {}
        self.last_results: Dict[str, Dict[str, Any]] = {}

    def register_check(self, name: str, check_func: Callable, timeout: float = 5.0):
        self.checks[name] = {"func": check_func, "timeout": timeout}
        logger.info(f"Registered health check: {name}")

    @staticmethod
    def _outcome(status: str, message: str, started: float, **extra) -> Dict[str, Any]:
        return {
            "status": status,
            "message": message,
            "duration_ms": round((time.time() - started) * 1000, 2),
            "timestamp": datetime.utcnow().isoformat(),
            **extra,
        }

    async def run_check(self, name: str) -> Dict[str, Any]:
        """Run one check and remember its outcome."""
        check = self.checks.get(name)
        if check is None:
            return {
                "status": "error",
                "message": f"Health check '{name}' not found",
                "timestamp": datetime.utcnow().isoformat()
            }

        func, timeout = check["func"], check["timeout"]
        started = time.time()
        try:
            pending = func() if asyncio.iscoroutinefunction(func) else asyncio.to_thread(func)
            value = await asyncio.wait_for(pending, timeout=timeout)
        except asyncio.TimeoutError:
            outcome = self._outcome("timeout", f"Health check timed out after {timeout}s", started)
        except Exception as e:
            logger.warning(f"Health check '{name}' failed: {e}")
            outcome = self._outcome("unhealthy", str(e), started, error_type=type(e).__name__)
        else:
            outcome = self._outcome("healthy", value if isinstance(value, str) else "Check passed", started)
            if isinstance(value, dict):
                outcome.update(value)

        self.last_results[name] = outcome
        return outcome

    async def run_all_checks(self) -> Dict[str, Any]:
        """Run every registered check; overall status is healthy only if all are."""
        results = {name: await self.run_check(name) for name in self.checks}
        healthy = all(result["status"] == "healthy" for result in results.values())
        return {
            "overall_status": "healthy" if healthy else "unhealthy",
            "checks": results,
            "timestamp": datetime.utcnow().isoformat()
        }
