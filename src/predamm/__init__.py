"""PredAMM - AMM-priced prediction-market ledger."""

__version__ = "0.1.0"
