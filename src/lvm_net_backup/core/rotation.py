"""Rotation policies for local backup images.

Each policy is a strategy deciding which images of one host/vg/lv are no
longer needed. Plans are only reported: nothing here deletes files.

- current: keep the newest image only
- day: newest of the day, month and year (4 images)
- month: newest of the month and year (3 images)
- year: newest of the year (2 images)
- disabled: keep every image

The day, month and year policies only carry their documented retention
counts; selecting the images they keep is not implemented yet.
"""

import logging
from typing import Optional

from .. import __util__
from .artifact import BackupArtifact

logger = logging.getLogger(__name__)


class RotationStrategy:
    """Base class of the rotation policies."""

    name = ""
    retention_count: Optional[int] = None

    def select_expired(self, artifacts: list[BackupArtifact]) -> list[BackupArtifact]:
        """Return the images that this policy no longer keeps."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class CurrentRotation(RotationStrategy):
    name = "current"
    retention_count = 1

    def select_expired(self, artifacts):
        ordered = sorted(artifacts)
        return ordered[:-1]


class DisabledRotation(RotationStrategy):
    name = "disabled"

    def select_expired(self, artifacts):
        return []


class _PeriodRotation(RotationStrategy):
    def select_expired(self, artifacts):
        # TODO: implement once the rule picking the image kept per period is settled
        raise __util__.RotationNotImplemented(
            f"rotation policy '{self.name}' (keep {self.retention_count}) "
            "is not implemented yet"
        )


class DayRotation(_PeriodRotation):
    name = "day"
    retention_count = 4


class MonthRotation(_PeriodRotation):
    name = "month"
    retention_count = 3


class YearRotation(_PeriodRotation):
    name = "year"
    retention_count = 2


STRATEGIES: dict[str, type[RotationStrategy]] = {
    cls.name: cls
    for cls in (
        CurrentRotation,
        DayRotation,
        MonthRotation,
        YearRotation,
        DisabledRotation,
    )
}


def get_strategy(policy: str) -> RotationStrategy:
    """Instantiate the strategy registered as `policy`.

    Raises:
        ValueError: If no strategy has this name
    """
    try:
        return STRATEGIES[policy]()
    except KeyError:
        raise ValueError(
            f"Unknown rotation policy '{policy}', "
            f"expected one of: {', '.join(STRATEGIES)}"
        ) from None


def plan_rotation(
    artifacts: list[BackupArtifact], policy: str
) -> tuple[list[BackupArtifact], list[BackupArtifact]]:
    """Split `artifacts` into (kept, expired) according to `policy`.

    Raises:
        RotationNotImplemented: If the policy has no selection rule yet
    """
    strategy = get_strategy(policy)
    expired = strategy.select_expired(artifacts)
    kept = [a for a in sorted(artifacts) if a not in expired]
    logger.debug("%r keeps %d, expires %d", strategy, len(kept), len(expired))
    return kept, expired
