"""Explicit undo stack for a multi-store write.

Every forward step that succeeds pushes its compensating action.  On
failure :meth:`Saga.compensate` pops them newest-first and runs each one
regardless of whether the previous one failed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from doc_ingest.errors import PartialRollbackFailure

logger = logging.getLogger(__name__)


@dataclass
class RollbackReport:
    attempted: bool = False
    completed_steps: list[str] = field(default_factory=list)
    failed_steps: dict[str, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return self.attempted and not self.failed_steps

    def as_error(self) -> PartialRollbackFailure | None:
        return PartialRollbackFailure(dict(self.failed_steps)) if self.failed_steps else None


class Saga:
    """Stack of named compensating actions.

    Parameters
    ----------
    name:
        Used in log lines, typically the document id.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._undo: list[tuple[str, Callable[[], None]]] = []

    def push(self, step: str, undo: Callable[[], None]) -> None:
        self._undo.append((step, undo))

    @property
    def steps(self) -> list[str]:
        return [step for step, _ in self._undo]

    def compensate(self) -> RollbackReport:
        """Run every pushed undo in reverse order; never raises."""
        report = RollbackReport(attempted=True)
        while self._undo:
            step, undo = self._undo.pop()
            try:
                undo()
            except Exception as exc:
                logger.error("Rollback of %s failed for %s: %s", step, self.name, exc)
                report.failed_steps[step] = str(exc)
            else:
                report.completed_steps.append(step)

        error = report.as_error()
        if error is not None:
            logger.error("%s: %s", self.name, error)
        else:
            logger.info("Rolled back %s (%s)", self.name, ", ".join(report.completed_steps) or "nothing")
        return report
