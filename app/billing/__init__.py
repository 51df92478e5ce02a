"""
Billing app: the clinic's patient ledger.

Keeps each patient's aggregate totals consistent with the treatment line
items behind them. All writes go through billing.services.BillingService.
"""
