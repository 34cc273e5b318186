"""Data models for the feasibility cashflow engine."""

from .lookups import (
    CostCategory,
    InputBasis,
    DistributionShape,
    GstTreatment,
    CalculationLink,
    MilestoneLink,
    Strategy,
    RevenueCalcMode,
    DebtLimitMethod,
    InterestRateMode,
    FeeBase,
    EquityMode,
    FundingSource,
    TaxState,
    TaxType,
    BracketMethod,
    TaxBracket,
    TaxConfiguration,
    DEFAULT_TAX_SCALES,
)
from .capital import (
    DatedRate,
    DatedAmount,
    CapitalTier,
    EquityStructure,
    JointVenture,
    CapitalStack,
)
from .project import (
    FeasibilityInputError,
    LineItem,
    RevenueItem,
    AcquisitionTerms,
    Site,
    GrowthSettings,
    DepreciationSplit,
    HoldStrategy,
    FeasibilitySettings,
    Scenario,
    validate_scenario,
)

__all__ = [
    "CostCategory",
    "InputBasis",
    "DistributionShape",
    "GstTreatment",
    "CalculationLink",
    "MilestoneLink",
    "Strategy",
    "RevenueCalcMode",
    "DebtLimitMethod",
    "InterestRateMode",
    "FeeBase",
    "EquityMode",
    "FundingSource",
    "TaxState",
    "TaxType",
    "BracketMethod",
    "TaxBracket",
    "TaxConfiguration",
    "DEFAULT_TAX_SCALES",
    "DatedRate",
    "DatedAmount",
    "CapitalTier",
    "EquityStructure",
    "JointVenture",
    "CapitalStack",
    "FeasibilityInputError",
    "LineItem",
    "RevenueItem",
    "AcquisitionTerms",
    "Site",
    "GrowthSettings",
    "DepreciationSplit",
    "HoldStrategy",
    "FeasibilitySettings",
    "Scenario",
    "validate_scenario",
]
