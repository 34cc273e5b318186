"""Lookup tables for cost categories, funding modes, and statutory tax scales."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class CostCategory(Enum):
    """Cost category used for grouping and for phase anchoring."""

    LAND = "land"
    CONSULTANTS = "consultants"
    CONSTRUCTION = "construction"
    STATUTORY = "statutory"
    MISCELLANEOUS = "miscellaneous"
    SELLING = "selling"
    FINANCE = "finance"


class InputBasis(Enum):
    """How a line item's amount is interpreted at evaluation time."""

    FIXED = "fixed"  # Amount is dollars
    PCT_REVENUE = "pct_revenue"  # Fraction of estimated gross revenue
    PCT_CONSTRUCTION = "pct_construction"  # Fraction of construction sum
    RATE_PER_UNIT = "rate_per_unit"  # Dollars x total units
    RATE_PER_SQM = "rate_per_sqm"  # Dollars x site land area


class DistributionShape(Enum):
    """Time profile used to spread a total across a span of months."""

    LINEAR = "linear"
    S_CURVE = "s_curve"
    BELL_CURVE = "bell_curve"
    MILESTONE = "milestone"
    UPFRONT = "upfront"
    END = "end"


class GstTreatment(Enum):
    """GST treatment of a cost line."""

    TAXABLE = "taxable"
    GST_FREE = "gst_free"
    INPUT_TAXED = "input_taxed"
    MARGIN_SCHEME = "margin_scheme"


class CalculationLink(Enum):
    """Line items whose amount is derived from a statutory calculation."""

    NONE = "none"
    AUTO_STAMP_DUTY = "auto_stamp_duty"
    AUTO_LAND_TAX = "auto_land_tax"


class MilestoneLink(Enum):
    """Timeline anchor that a line item's start offset is measured from."""

    PROJECT_START = "project_start"
    ACQUISITION = "acquisition"  # Settlement month
    CONSTRUCTION_START = "construction_start"
    CONSTRUCTION_END = "construction_end"


class Strategy(Enum):
    """Development strategy for a scenario or revenue item."""

    SELL = "sell"
    HOLD = "hold"


class RevenueCalcMode(Enum):
    """Revenue recognition input mode."""

    LUMP_SUM = "lump_sum"  # price_per_unit is the whole amount
    QUANTITY_RATE = "quantity_rate"  # units x price_per_unit


class DebtLimitMethod(Enum):
    """How a debt tier's facility limit is expressed."""

    FIXED = "fixed"
    LVR = "lvr"  # Fraction of gross revenue
    LTC = "ltc"  # Fraction of total development cost


class InterestRateMode(Enum):
    """Single rate or a dated schedule of rates."""

    SINGLE = "single"
    VARIABLE = "variable"


class FeeBase(Enum):
    """Basis for a facility establishment fee."""

    FIXED = "fixed"
    PERCENT = "percent"  # Fraction of the facility limit


class EquityMode(Enum):
    """How developer equity enters the project."""

    SUM_OF_MONEY = "sum_of_money"  # Single upfront sum
    INSTALMENTS = "instalments"  # Dated amounts
    PCT_LAND = "pct_land"  # Fraction of land purchase price, upfront
    PCT_TOTAL_COST = "pct_total_cost"  # Fraction of total cost (pre-interest), upfront
    PCT_MONTHLY = "pct_monthly"  # Fraction of each month's deficit, pari passu


class FundingSource(Enum):
    """Funding tier that can be earmarked for land payments."""

    EQUITY = "equity"
    SENIOR = "senior"
    MEZZANINE = "mezzanine"


class TaxState(Enum):
    """Tax jurisdictions with embedded bracket tables."""

    VIC = "VIC"
    NSW = "NSW"
    QLD = "QLD"
    SA = "SA"
    WA = "WA"
    TAS = "TAS"
    ACT = "ACT"
    NT = "NT"


class TaxType(Enum):
    """Statutory tax families with bracket tables."""

    STAMP_DUTY = "stamp_duty"
    LAND_TAX_GENERAL = "land_tax_general"
    LAND_TAX_TRUST = "land_tax_trust"


class BracketMethod(Enum):
    """Evaluation method of a tax bracket."""

    SLIDING = "sliding"  # base + rate x excess over previous limit
    FLAT = "flat"  # rate x whole amount


@dataclass(frozen=True)
class TaxBracket:
    """One row of a tax scale.

    limit of None marks the open-ended top bracket.
    """

    limit: Optional[float]
    rate: float  # Fraction (0.055 = 5.5%)
    base: float = 0.0
    method: BracketMethod = BracketMethod.SLIDING


TaxConfiguration = Dict[TaxState, Dict[TaxType, List[TaxBracket]]]


# 2024/25 scales
DEFAULT_TAX_SCALES: TaxConfiguration = {
    TaxState.VIC: {
        TaxType.STAMP_DUTY: [
            TaxBracket(25_000, 0.014),
            TaxBracket(130_000, 0.024, 350),
            TaxBracket(480_000, 0.05, 2_870),
            TaxBracket(960_000, 0.06, 20_370),
            # Above $960k duty is a flat 5.5% of the whole price
            TaxBracket(None, 0.055, 0, BracketMethod.FLAT),
        ],
        TaxType.LAND_TAX_GENERAL: [
            TaxBracket(50_000, 0.0),
            TaxBracket(100_000, 0.0, 500),
            TaxBracket(300_000, 0.001, 975),
            TaxBracket(600_000, 0.003, 1_350),
            TaxBracket(1_000_000, 0.009, 2_950),
            TaxBracket(1_800_000, 0.012, 4_975),
            TaxBracket(3_000_000, 0.0155, 16_475),
            TaxBracket(None, 0.0255, 35_075),
        ],
        TaxType.LAND_TAX_TRUST: [],
    },
    TaxState.NSW: {
        TaxType.STAMP_DUTY: [
            TaxBracket(17_000, 0.0125),
            TaxBracket(37_000, 0.015, 212),
            TaxBracket(97_000, 0.0175, 512),
            TaxBracket(368_000, 0.035, 1_562),
            TaxBracket(1_220_000, 0.045, 11_047),
            TaxBracket(None, 0.055, 49_387),
        ],
        TaxType.LAND_TAX_GENERAL: [
            TaxBracket(1_075_000, 0.0),
            TaxBracket(None, 0.016, 100),
        ],
        TaxType.LAND_TAX_TRUST: [],
    },
    TaxState.QLD: {
        TaxType.STAMP_DUTY: [
            TaxBracket(5_000, 0.0),
            TaxBracket(75_000, 0.015),
            TaxBracket(540_000, 0.035, 1_050),
            TaxBracket(1_000_000, 0.045, 17_325),
            TaxBracket(None, 0.0575, 38_025),
        ],
        TaxType.LAND_TAX_GENERAL: [
            TaxBracket(600_000, 0.0),
            TaxBracket(1_000_000, 0.01, 500),
            TaxBracket(3_000_000, 0.0165, 4_500),
            TaxBracket(5_000_000, 0.0125, 37_500),
            TaxBracket(10_000_000, 0.0175, 62_500),
            TaxBracket(None, 0.0225, 150_000),
        ],
        TaxType.LAND_TAX_TRUST: [],
    },
}

# Flat rates applied when a jurisdiction has no table for the tax type
FALLBACK_TAX_RATES: Dict[TaxType, float] = {
    TaxType.STAMP_DUTY: 0.05,
    TaxType.LAND_TAX_GENERAL: 0.0255,
    TaxType.LAND_TAX_TRUST: 0.0255,
}

FOREIGN_PURCHASER_SURCHARGE = 0.08

DEFAULT_S_CURVE_STEEPNESS = 12.0
BELL_CURVE_SIGMA = 1 / 6  # Gaussian spread as a fraction of the span

# Prime-cost depreciation rates (annual)
CAPITAL_WORKS_RATE = 0.025
PLANT_RATE = 0.10

MAX_HORIZON_MONTHS = 600
IRR_MAX_ITERATIONS = 40
IRR_EPSILON = 1e-12
IRR_INITIAL_GUESS = 0.0
IRR_MAX_RATE = 20.0  # Periodic; guesses at or above are divergent
