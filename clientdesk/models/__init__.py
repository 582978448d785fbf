from clientdesk.models.analytics import AnalyticsMetric, MetricTrend, MetricType, TimeRange
from clientdesk.models.billing import (
    Installment,
    InstallmentStatus,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Payment,
    PaymentMethod,
)
from clientdesk.models.client import Client, ClientPaymentStatus, ClientPlan, ClientStatus
from clientdesk.models.dashboard import DashboardEvent, DashboardNote
from clientdesk.models.finance import (
    ClientCostSubscription,
    CostItem,
    Transaction,
    TransactionStatus,
    TransactionSubtype,
    TransactionType,
)
from clientdesk.models.notification import (
    Notification,
    NotificationPriority,
    NotificationType,
)
from clientdesk.models.organization import Member, MemberRole, Organization

__all__ = [
    "AnalyticsMetric",
    "Client",
    "ClientCostSubscription",
    "ClientPaymentStatus",
    "ClientPlan",
    "ClientStatus",
    "CostItem",
    "DashboardEvent",
    "DashboardNote",
    "Installment",
    "InstallmentStatus",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Member",
    "MemberRole",
    "MetricTrend",
    "MetricType",
    "Notification",
    "NotificationPriority",
    "NotificationType",
    "Organization",
    "Payment",
    "PaymentMethod",
    "TimeRange",
    "Transaction",
    "TransactionStatus",
    "TransactionSubtype",
    "TransactionType",
]
