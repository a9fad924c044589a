"""Outcome of a backup run, accumulated step by step."""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .. import __util__


class Step(Enum):
    """Steps of a backup run, in execution order."""

    PREFLIGHT = "preflight"
    SNAPSHOT = "snapshot"
    TRANSFER = "transfer"
    CLEANUP = "cleanup"
    ROTATION = "rotation"


class StepStatus(Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"
    DRY_RUN = "dry-run"


@dataclass
class StepOutcome:
    """Result of a single step."""

    step: Step
    status: StepStatus
    message: str = ""


@dataclass
class BackupResult:
    """Ordered step outcomes of one run; any failed step fails the run."""

    artifact: Optional[Path] = None
    started_at: float = field(default_factory=time.time)
    completed_at: float = 0.0
    outcomes: list[StepOutcome] = field(default_factory=list)

    def record(self, step: Step, status: StepStatus, message: str = "") -> StepOutcome:
        outcome = StepOutcome(step, status, message)
        self.outcomes.append(outcome)
        return outcome

    def outcome(self, step: Step) -> Optional[StepOutcome]:
        for outcome in self.outcomes:
            if outcome.step is step:
                return outcome
        return None

    @property
    def failed(self) -> bool:
        return any(o.status is StepStatus.FAILED for o in self.outcomes)

    @property
    def errors(self) -> list[str]:
        return [o.message for o in self.outcomes if o.status is StepStatus.FAILED]

    @property
    def exit_code(self) -> int:
        return __util__.EXIT_FAILURE if self.failed else __util__.EXIT_SUCCESS

    @property
    def duration(self) -> float:
        if self.completed_at:
            return self.completed_at - self.started_at
        return time.time() - self.started_at
