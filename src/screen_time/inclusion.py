"""Which subjects count toward a total."""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict


class AllLaunchable(BaseModel):
    """Every launchable app counts."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["all_launchable"] = "all_launchable"

    def includes(self, subject_id: str, launchable: frozenset[str]) -> bool:
        return subject_id in launchable


class TrackedOnly(BaseModel):
    """Only explicitly tracked launchable apps count."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["tracked_only"] = "tracked_only"
    subjects: frozenset[str]

    def includes(self, subject_id: str, launchable: frozenset[str]) -> bool:
        return subject_id in launchable and subject_id in self.subjects


class ExemptExcluded(BaseModel):
    """Every launchable app counts except the exempt ones."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["exempt_excluded"] = "exempt_excluded"
    subjects: frozenset[str]

    def includes(self, subject_id: str, launchable: frozenset[str]) -> bool:
        return subject_id in launchable and subject_id not in self.subjects


Inclusion = Union[AllLaunchable, TrackedOnly, ExemptExcluded]

GOAL_CUSTOM_GROUP = "custom_group"
GOAL_TOTAL_TIME = "total_time"


def inclusion_for_goal(
    goal_type: str | None,
    tracked: list[str] | None = None,
    exempt: list[str] | None = None,
) -> Inclusion:
    """Pick the inclusion rule for a pledge goal type.

    Args:
        goal_type: ``custom_group``, ``total_time`` or anything else
            (case-insensitive; unknown and empty values count every app).
        tracked: Packages counted for ``custom_group`` goals.
        exempt: Packages excluded for ``total_time`` goals.
    """
    normalized = (goal_type or "").lower()
    if normalized == GOAL_CUSTOM_GROUP:
        return TrackedOnly(subjects=frozenset(tracked or ()))
    if normalized == GOAL_TOTAL_TIME:
        return ExemptExcluded(subjects=frozenset(exempt or ()))
    return AllLaunchable()
