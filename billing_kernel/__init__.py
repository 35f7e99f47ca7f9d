"""
Billing Kernel

The quote-to-payment consistency engine and financial aggregation engine
behind a small business-management tool:
- Exactly-once payment derivation for approved quotes
- Unlink-not-delete when a quote disappears
- Closed status state machines for quotes and payments
- Exact decimal monthly rollups and a recent-activity feed
"""

__version__ = "0.1.0"
