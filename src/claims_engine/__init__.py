"""
Claims Adjudication & Disbursement Authorization Engine.

Decides whether a submitted medical claim may trigger a payout: provider
trust gate, fraud escalation ladder, benefit utilization ledger and
dual-control approval.
"""

__version__ = "1.0.0"
