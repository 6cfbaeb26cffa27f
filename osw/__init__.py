"""Options Strategy Workbench: pricing, multi-leg analysis and scenario grids."""

__version__ = "0.1.0"
