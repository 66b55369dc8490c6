"""
Portfolio & transaction ledger engine.

Risk scoring, allocation policy, portfolio aggregates, the holding ledger,
buy/sell transaction processing and recommendations over MongoDB and Redis.
"""

__version__ = "0.1.0"
