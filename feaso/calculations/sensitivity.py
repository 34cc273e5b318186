"""Sensitivity matrix: construction cost against sale price.

Each cell re-runs the full engine with construction line items scaled by
the row step and revenue prices scaled by the column step. Cells are
independent, so they can be evaluated on a thread pool.
"""

import concurrent.futures
import logging
import multiprocessing
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..models.lookups import CostCategory, InputBasis, TaxConfiguration
from ..models.project import Scenario, Site
from .engine import calculate_feasibility
from .metrics import ProjectMetrics

logger = logging.getLogger(__name__)

DEFAULT_STEPS = (-0.15, -0.10, -0.05, 0.0, 0.05, 0.10, 0.15)

# ProjectMetrics fields a matrix can report
SUPPORTED_METRICS = (
    "net_profit",
    "margin_on_cost",
    "margin_on_equity",
    "equity_irr",
    "project_irr",
    "npv",
    "peak_debt",
)


@dataclass
class SensitivityCell:
    """Result of one cost/price combination."""

    cost_step: float
    price_step: float
    metrics: ProjectMetrics


@dataclass
class SensitivityMatrix:
    """Grid of engine results: rows are cost steps, columns price steps."""

    cost_steps: List[float]
    price_steps: List[float]
    cells: Dict[Tuple[float, float], SensitivityCell] = field(default_factory=dict)

    def get_cell(self, cost_step: float, price_step: float) -> SensitivityCell:
        return self.cells[(cost_step, price_step)]

    def get_value(self, cost_step: float, price_step: float, metric: str = "net_profit") -> Optional[Decimal]:
        return getattr(self.get_cell(cost_step, price_step).metrics, metric)

    def get_heatmap_data(self, metric: str = "net_profit") -> np.ndarray:
        """Metric values as a 2D array (rows = cost steps, cols = price steps).

        Undefined values (an IRR with no solution) are NaN.
        """
        if metric not in SUPPORTED_METRICS:
            raise ValueError(f"Unsupported metric '{metric}'; choose from {SUPPORTED_METRICS}")

        data = np.full((len(self.cost_steps), len(self.price_steps)), np.nan)
        for i, cost_step in enumerate(self.cost_steps):
            for j, price_step in enumerate(self.price_steps):
                value = self.get_value(cost_step, price_step, metric)
                if value is not None:
                    data[i, j] = float(value)
        return data

    def to_frame(self, metric: str = "net_profit") -> pd.DataFrame:
        """Heatmap as a labelled DataFrame."""
        return pd.DataFrame(
            self.get_heatmap_data(metric),
            index=pd.Index([f"{s:+.0%}" for s in self.cost_steps], name="construction cost"),
            columns=pd.Index([f"{s:+.0%}" for s in self.price_steps], name="sale price"),
        )

    def summary(self, metric: str = "net_profit") -> Dict[str, float]:
        """Min, max and base-case value of a metric across the grid."""
        data = self.get_heatmap_data(metric)
        base = np.nan
        if 0.0 in self.cost_steps and 0.0 in self.price_steps:
            base = data[self.cost_steps.index(0.0), self.price_steps.index(0.0)]
        return {
            "min": float(np.nanmin(data)) if not np.all(np.isnan(data)) else np.nan,
            "max": float(np.nanmax(data)) if not np.all(np.isnan(data)) else np.nan,
            "base": float(base),
            "undefined_cells": int(np.isnan(data).sum()),
        }


def flex_scenario(scenario: Scenario, cost_step: float, price_step: float) -> Scenario:
    """Copy of a scenario with construction cost and revenue prices scaled.

    Only fixed-amount and rate-based construction items are scaled;
    percentage-based items follow their bases automatically.
    """
    cost_factor = 1 + cost_step
    price_factor = 1 + price_step

    costs = [
        replace(item, amount=item.amount * cost_factor)
        if item.category == CostCategory.CONSTRUCTION
        and item.input_basis not in (InputBasis.PCT_CONSTRUCTION, InputBasis.PCT_REVENUE)
        and not item.revenue_linked
        else item
        for item in scenario.costs
    ]
    revenues = [
        replace(item, price_per_unit=item.price_per_unit * price_factor)
        for item in scenario.revenues
    ]
    return replace(scenario, costs=costs, revenues=revenues)


def _run_cell(
    scenario: Scenario,
    site: Site,
    cost_step: float,
    price_step: float,
    tax_scales: Optional[TaxConfiguration],
) -> SensitivityCell:
    flexed = flex_scenario(scenario, cost_step, price_step)
    result = calculate_feasibility(flexed, site, tax_scales)
    return SensitivityCell(cost_step=cost_step, price_step=price_step, metrics=result.metrics)


def generate_sensitivity_matrix(
    scenario: Scenario,
    site: Site,
    steps: Sequence[float] = DEFAULT_STEPS,
    price_steps: Optional[Sequence[float]] = None,
    parallel: bool = True,
    max_workers: Optional[int] = None,
    tax_scales: Optional[TaxConfiguration] = None,
) -> SensitivityMatrix:
    """Run the engine over a grid of cost and price variations.

    Args:
        scenario: Base scenario.
        site: Site record.
        steps: Fractional variations for construction cost (and for price
            when price_steps is not given), e.g. -0.05 for -5%.
        price_steps: Optional separate variations for sale prices.
        parallel: Evaluate cells on a thread pool.
        max_workers: Pool size (None = CPU count, capped at 8).
        tax_scales: Optional tax table override.

    Returns:
        SensitivityMatrix.

    Example:
        >>> matrix = generate_sensitivity_matrix(scenario, site, steps=[-0.1, 0.0, 0.1])
        >>> matrix.get_heatmap_data("margin_on_cost").shape
        (3, 3)
    """
    cost_steps = list(steps)
    price_steps = list(steps if price_steps is None else price_steps)
    grid = [(c, p) for c in cost_steps for p in price_steps]
    matrix = SensitivityMatrix(cost_steps=cost_steps, price_steps=price_steps)

    if parallel and len(grid) > 1:
        max_workers = max_workers or min(multiprocessing.cpu_count(), 8)
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(_run_cell, scenario, site, c, p, tax_scales)
                for c, p in grid
            ]
            for future in concurrent.futures.as_completed(futures):
                cell = future.result()
                matrix.cells[(cell.cost_step, cell.price_step)] = cell
    else:
        for c, p in grid:
            matrix.cells[(c, p)] = _run_cell(scenario, site, c, p, tax_scales)

    logger.info(
        "Sensitivity matrix for '%s': %d x %d cells",
        scenario.name, len(cost_steps), len(price_steps),
    )
    return matrix
