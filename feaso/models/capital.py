"""Capital stack structures: debt tiers, equity, and joint venture terms."""

from dataclasses import dataclass, field
from typing import List, Optional

from .lookups import DebtLimitMethod, EquityMode, FeeBase, InterestRateMode


@dataclass(frozen=True)
class DatedRate:
    """Annual interest rate effective from a month index onward."""

    month: int
    rate: float


@dataclass(frozen=True)
class DatedAmount:
    """Amount payable at a month index."""

    month: int
    amount: float


@dataclass(frozen=True)
class CapitalTier:
    """A debt facility (senior or mezzanine).

    A limit of None is an unlimited facility regardless of limit method.
    Any numeric limit, including 0, is a hard capacity. For LVR and LTC
    the limit is a fraction of gross revenue or total cost respectively.
    """

    rate_mode: InterestRateMode = InterestRateMode.SINGLE
    interest_rate: float = 0.0  # Annual
    variable_rates: List[DatedRate] = field(default_factory=list)

    establishment_fee_base: FeeBase = FeeBase.FIXED
    establishment_fee: float = 0.0  # Dollars, or fraction of limit
    line_fee: float = 0.0  # Annual fraction of limit

    limit_method: DebtLimitMethod = DebtLimitMethod.FIXED
    limit: Optional[float] = None
    activation_month: int = 0
    is_interest_capitalised: bool = True

    def rate_for_month(self, month: int) -> float:
        """Annual rate in force at a month.

        Variable mode uses the latest dated rate at or before the month,
        falling back to the base rate before the first entry.
        """
        if self.rate_mode == InterestRateMode.SINGLE or not self.variable_rates:
            return self.interest_rate

        rate = self.interest_rate
        for dated in sorted(self.variable_rates, key=lambda r: r.month):
            if dated.month <= month:
                rate = dated.rate
            else:
                break
        return rate


def disabled_tier() -> CapitalTier:
    """A tier with zero capacity (used as the default mezzanine)."""
    return CapitalTier(limit=0.0)


@dataclass(frozen=True)
class EquityStructure:
    """Developer equity and how it is contributed."""

    mode: EquityMode = EquityMode.SUM_OF_MONEY
    initial_contribution: float = 0.0  # SUM_OF_MONEY
    instalments: List[DatedAmount] = field(default_factory=list)  # INSTALMENTS
    percentage: float = 0.0  # PCT_LAND, PCT_TOTAL_COST, PCT_MONTHLY
    allow_top_up: bool = True  # Equity funds residual deficits as last resort


@dataclass(frozen=True)
class JointVenture:
    """Joint venture partner split."""

    enabled: bool = False
    partner_name: str = ""
    equity_split: float = 0.0  # Partner share of equity contributed
    profit_share: float = 0.0  # Partner share of net profit


@dataclass(frozen=True)
class CapitalStack:
    """Layered funding for a project."""

    senior: CapitalTier = field(default_factory=CapitalTier)
    mezzanine: CapitalTier = field(default_factory=disabled_tier)
    equity: EquityStructure = field(default_factory=EquityStructure)
    jv: JointVenture = field(default_factory=JointVenture)
    surplus_interest_rate: float = 0.0  # Annual, earned on surplus cash
