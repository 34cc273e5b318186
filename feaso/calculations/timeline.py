"""Timeline builder: phase boundaries shared by every schedule."""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from dateutil.relativedelta import relativedelta

from ..models.lookups import (
    CostCategory,
    MAX_HORIZON_MONTHS,
    MilestoneLink,
    Strategy,
)
from ..models.project import FeasibilityInputError, FeasibilitySettings, LineItem, Site


@dataclass(frozen=True)
class Timeline:
    """Phase boundaries of a scenario, as 0-based month indices.

    The horizon is inclusive: a run has horizon + 1 months.
    """

    start_date: date
    settlement_month: int
    construction_start: int
    construction_end: int
    operating_start: int
    horizon: int
    refinance_month: Optional[int] = None  # Hold only
    terminal_month: Optional[int] = None  # Hold with a hold period only

    @property
    def months(self) -> range:
        """Month indices 0..horizon."""
        return range(self.horizon + 1)

    @property
    def construction_months(self) -> int:
        return self.construction_end - self.construction_start

    def month_label(self, month: int) -> str:
        """Calendar label for a month index, e.g. 'Jun 24'."""
        return (self.start_date + relativedelta(months=month)).strftime("%b %y")

    def labels(self) -> List[str]:
        return [self.month_label(m) for m in self.months]

    def anchor_month(self, milestone: MilestoneLink) -> int:
        """Month index a milestone-anchored offset is measured from."""
        if milestone == MilestoneLink.ACQUISITION:
            return self.settlement_month
        if milestone == MilestoneLink.CONSTRUCTION_START:
            return self.construction_start
        if milestone == MilestoneLink.CONSTRUCTION_END:
            return self.construction_end
        return 0

    def item_start(self, item: LineItem) -> int:
        """Absolute first month of a line item."""
        milestone = item.milestone
        if milestone is None:
            milestone = (
                MilestoneLink.CONSTRUCTION_START
                if item.category == CostCategory.CONSTRUCTION
                else MilestoneLink.PROJECT_START
            )
        return self.anchor_month(milestone) + item.start


def build_timeline(
    settings: FeasibilitySettings,
    site: Site,
    costs: List[LineItem],
    strategy: Strategy = Strategy.SELL,
) -> Timeline:
    """Derive phase boundaries from settings and the cost list.

    construction start = settlement month + construction delay
    construction end = max(construction start + offset + span) over
        construction items, or the configured duration when there are none
    operating start = construction end
    horizon = construction end + 12 x hold years for a hold scenario with
        a hold period, otherwise the configured duration

    Args:
        settings: Scenario settings.
        site: Site record (supplies the settlement month).
        costs: Authored line items.
        strategy: Scenario strategy.

    Returns:
        Timeline.

    Raises:
        FeasibilityInputError: If the horizon exceeds MAX_HORIZON_MONTHS.
    """
    settlement = site.acquisition.settlement_month
    construction_start = settlement + settings.construction_delay

    anchors = {
        None: construction_start,
        MilestoneLink.CONSTRUCTION_START: construction_start,
        MilestoneLink.ACQUISITION: settlement,
        MilestoneLink.PROJECT_START: 0,
    }
    # Items anchored on construction end cannot define it
    construction_ends = [
        anchors[item.milestone] + item.start + item.span
        for item in costs
        if item.category == CostCategory.CONSTRUCTION and item.milestone in anchors
    ]
    construction_end = max(construction_ends) if construction_ends else settings.duration_months

    hold = settings.hold_strategy
    refinance_month = None
    terminal_month = None
    horizon = settings.duration_months
    if strategy == Strategy.HOLD and hold is not None:
        refinance_month = hold.refinance_month
        if hold.hold_period_years > 0:
            horizon = construction_end + 12 * hold.hold_period_years
            terminal_month = horizon

    if horizon > MAX_HORIZON_MONTHS:
        raise FeasibilityInputError(
            [f"Horizon of {horizon} months exceeds the {MAX_HORIZON_MONTHS} month limit"]
        )

    return Timeline(
        start_date=settings.start_date,
        settlement_month=settlement,
        construction_start=construction_start,
        construction_end=construction_end,
        operating_start=construction_end,
        horizon=horizon,
        refinance_month=refinance_month,
        terminal_month=terminal_month,
    )
