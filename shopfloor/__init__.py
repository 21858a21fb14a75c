"""Production plan launch scheduler and execution-reconciliation engine."""

__version__ = "0.1.0"
