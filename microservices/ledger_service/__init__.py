"""
Ledger Service

HTTP adapter over the campaign, donation and account services.
Maps typed results and ledger errors to JSON responses.

Port: 8250
"""

__version__ = "1.0.0"
__service__ = "ledger_service"
