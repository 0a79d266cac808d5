"""
Best-effort step results.

Side effects that must not decide a request's outcome (notes, audit
rows, backup queue rows, CRM recording links) run through these
helpers. Failures are logged and returned as data instead of raised.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepResult:
    """Outcome of a best-effort step."""
    step: str
    ok: bool
    value: Any = None
    error: Optional[str] = None

    def as_dict(self) -> dict:
        result = {'step': self.step, 'ok': self.ok}
        if self.error:
            result['error'] = self.error
        return result


async def best_effort(step: str, action: Awaitable) -> StepResult:
    """Await a step, turning any failure into a logged, failed StepResult."""
    try:
        value = await action
    except Exception as ex:  # noqa: BLE001 - best-effort steps must not abort the caller
        logger.error("Best-effort step %s failed: %s", step, ex)
        return StepResult(step, ok=False, error=str(ex))
    return StepResult(step, ok=True, value=value)


def best_effort_sync(step: str, func: Callable, *args, **kwargs) -> StepResult:
    """Synchronous counterpart of ``best_effort``."""
    try:
        value = func(*args, **kwargs)
    except Exception as ex:  # noqa: BLE001 - best-effort steps must not abort the caller
        logger.error("Best-effort step %s failed: %s", step, ex)
        return StepResult(step, ok=False, error=str(ex))
    return StepResult(step, ok=True, value=value)
