"""
Account Service

Wallet owner records for the pledge ledger:
- Find-or-create of users keyed by wallet address
- Display name / profile completion
"""

__version__ = "1.0.0"
__service__ = "account_service"
