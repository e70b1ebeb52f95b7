"""
Campaign Service

Campaign write path and reads for the pledge ledger:
- Transactional create/update/delete with owner find-or-create
- Slug allocation with the unique constraint as final authority
- Cached campaign reads and listings with derived aggregates
"""

__version__ = "1.0.0"
__service__ = "campaign_service"
