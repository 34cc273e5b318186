"""Month-by-month development feasibility and capital stack engine."""

__version__ = "0.1.0"
