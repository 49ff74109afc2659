"""
Step runner with a compensation log.

Each completed step pushes the coroutine factory that undoes it. When a
later step raises, the recorded compensations run newest-first. A failing
compensation aborts the unwind and escalates to CriticalRollbackFailure,
since the remaining state can no longer be trusted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from .errors import CriticalRollbackFailure, PersistenceFailure, SettlementError
from .logs import json_log

Compensation = Callable[[], Awaitable[Any]]


@dataclass
class Saga:
    name: str
    subject_id: Any
    log: list[tuple[str, Compensation]] = field(default_factory=list)

    async def step(self, label: str, action: Callable[[], Awaitable[Any]], compensation: Optional[Compensation] = None):
        try:
            result = await action()
        except SettlementError:
            # Domain errors from a collaborator are still failures of this step.
            await self._unwind(label)
            raise
        except Exception as ex:
            json_log(
                "error",
                f"{self.name}.step_failed",
                subject_id=self.subject_id,
                step=label,
                error=str(ex),
                error_type=type(ex).__name__,
            )
            await self._unwind(label)
            raise PersistenceFailure(f"{self.name} failed at {label}: {ex}", step=label) from ex
        if compensation is not None:
            self.log.append((label, compensation))
        return result

    @property
    def completed(self) -> list[str]:
        return [label for label, _ in self.log]

    async def _unwind(self, failed_step: str):
        while self.log:
            label, undo = self.log.pop()
            try:
                await undo()
            except Exception as ex:
                json_log(
                    "critical",
                    "saga.compensation_failed",
                    saga=self.name,
                    subject_id=self.subject_id,
                    failed_step=failed_step,
                    compensation=label,
                    error=str(ex),
                    error_type=type(ex).__name__,
                )
                raise CriticalRollbackFailure(self.subject_id, step=label, error=str(ex)) from ex
