"""Billing services package.

    from clientdesk.services import billing as billing_service
    billing_service.invoices.create(db, org_id, payload)
"""

from clientdesk.services.billing.invoices import Invoices
from clientdesk.services.billing.payments import Installments, MonthlyPayments

# Singleton instances for service access
invoices = Invoices()
monthly_payments = MonthlyPayments()
installments = Installments()

__all__ = [
    "Invoices",
    "Installments",
    "MonthlyPayments",
    "installments",
    "invoices",
    "monthly_payments",
]
