"""Plan tier hierarchy and plan-change classification."""

from typing import NamedTuple, Optional, Sequence, Tuple

from ..core.exceptions import InvalidDuration
from .records import PlanChangeAction

UNKNOWN_LEVEL = -1


class TierDefinition(NamedTuple):
    duration_days: int
    name: str


DEFAULT_PLAN_HIERARCHY: Tuple[TierDefinition, ...] = (
    TierDefinition(1, "daily"),
    TierDefinition(7, "weekly"),
    TierDefinition(30, "monthly"),
    TierDefinition(90, "quarterly"),
    TierDefinition(365, "yearly"),
)


class PlanTierComparator:
    """
    Classifies a plan change as current, upgrade or downgrade.

    Equality is decided on tier position, direction on the raw day counts.
    Durations outside the hierarchy sit at ``UNKNOWN_LEVEL``, below every
    known tier, unless the comparator is strict, in which case they raise
    ``InvalidDuration``.
    """

    def __init__(self, hierarchy: Sequence[TierDefinition] = DEFAULT_PLAN_HIERARCHY, strict: bool = False):
        self.hierarchy = tuple(hierarchy)
        self.strict = strict
        self._levels = {tier.duration_days: index for index, tier in enumerate(self.hierarchy)}

    def level(self, duration_days: int) -> int:
        return self._levels.get(duration_days, UNKNOWN_LEVEL)

    def tier_name(self, duration_days: int) -> Optional[str]:
        level = self.level(duration_days)
        if level == UNKNOWN_LEVEL:
            return None
        return self.hierarchy[level].name

    def require_tier(self, duration_days: int) -> TierDefinition:
        level = self.level(duration_days)
        if level == UNKNOWN_LEVEL:
            raise InvalidDuration(duration_days)
        return self.hierarchy[level]

    def compare(self, current_duration_days: int, target_duration_days: int) -> PlanChangeAction:
        if self.strict:
            self.require_tier(current_duration_days)
            self.require_tier(target_duration_days)

        if self.level(current_duration_days) == self.level(target_duration_days):
            return PlanChangeAction.CURRENT
        if target_duration_days > current_duration_days:
            return PlanChangeAction.UPGRADE
        return PlanChangeAction.DOWNGRADE
