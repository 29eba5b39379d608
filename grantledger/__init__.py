"""
Grant Ledger - Source Package

A budget-allocation and spend-aggregation core for small nonprofits
managing grants, community sub-awards, deliverables and expenditures.

DESIGN PRINCIPLES:
1. Aggregates are always re-derived from stored entities, never cached
2. Nothing is in memory that is not also on disk
3. AI suggests → Human confirms → Ledger records
4. Every mutation is auditable
5. Storage and platform services are swappable
"""

__version__ = "1.0.0"
__author__ = "Grant Ledger Team"
