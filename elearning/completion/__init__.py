"""Course completion side effects: certificate issuance and notification."""

from .dispatcher import CompletionDispatcher
from .models import NOTIFICATIONS_TABLES_CQL, CompletionJob, NotificationType
from .protocols import CertificateIssuer, Notifier


__all__ = [
    "NOTIFICATIONS_TABLES_CQL",
    "CertificateIssuer",
    "CompletionDispatcher",
    "CompletionJob",
    "NotificationType",
    "Notifier",
]
