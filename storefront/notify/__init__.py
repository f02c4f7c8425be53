"""
Notifications — confirmation email and purchase analytics.

Both are best-effort: callers isolate their failures.
"""

from storefront.notify._email import EmailError, EmailSender, EmailJSSender, confirmation_params
from storefront.notify._analytics import AnalyticsSink, LogAnalyticsSink, purchase_params


__all__ = (
    "EmailError",
    "EmailSender",
    "EmailJSSender",
    "confirmation_params",
    "AnalyticsSink",
    "LogAnalyticsSink",
    "purchase_params",
)
