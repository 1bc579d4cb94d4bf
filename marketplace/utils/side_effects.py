"""
Best-effort secondary writes.

A lifecycle transition that has already been persisted may trigger a ledger
entry. If that entry cannot be written the transition stands: the failure is
logged and handed back to the caller as a warning, never raised.
"""

from dataclasses import dataclass
from typing import Any, Optional
import logging

from django.db import transaction

logger = logging.getLogger(__name__)


@dataclass
class SideEffectResult:
    description: str
    ok: bool
    value: Any = None
    error: Optional[Exception] = None

    @property
    def warning(self):
        if self.ok:
            return None
        return f"{self.description} failed: {self.error}"


def run_best_effort(description, fn, *args, **kwargs):
    """
    Call ``fn`` inside its own savepoint and report the outcome.

    Any exception is logged and returned in the result; the savepoint keeps
    a failed write from poisoning the caller's surrounding transaction.
    """
    try:
        with transaction.atomic():
            value = fn(*args, **kwargs)
    except Exception as e:
        logger.error(f"[SIDE_EFFECT] {description} failed: {str(e)}", exc_info=True)
        return SideEffectResult(description=description, ok=False, error=e)
    return SideEffectResult(description=description, ok=True, value=value)


def attach_warnings(instance, *results):
    """Expose failed side effects on ``instance.side_effect_warnings``."""
    instance.side_effect_warnings = [r.warning for r in results if r is not None and not r.ok]
    return instance
