"""
Donation Service

Donation write path and aggregates for the pledge ledger:
- Idempotent recording keyed on the transaction signature
- Donation histories per wallet and per campaign
- Cached per-campaign donation summaries
"""

__version__ = "1.0.0"
__service__ = "donation_service"
