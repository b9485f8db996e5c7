"""
Notification interface used by the screens and the admin CLI to surface
results (the toast in the storefront admin). Services never notify on their
own; callers turn results and errors into notifications.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from godown_allocation.exceptions import GodownError
from godown_allocation.logging_setup import get_logger
from godown_allocation.models import Severity


@dataclass
class Notification:
    title: str
    description: Optional[str] = None
    severity: Severity = Severity.INFO


class Notifier(ABC):
    """Surface a result to the operator."""

    @abstractmethod
    def notify(self, title: str, description: Optional[str] = None,
               severity: Severity = Severity.INFO) -> None:
        pass


class LoggingNotifier(Notifier):
    """Default notifier: writes notifications to the 'notifications' log."""

    _levels = {
        Severity.INFO: 'info',
        Severity.SUCCESS: 'info',
        Severity.WARNING: 'warning',
        Severity.ERROR: 'error',
    }

    def __init__(self, logger_name: str = 'notifications'):
        self.log = get_logger(logger_name)

    def notify(self, title, description=None, severity=Severity.INFO):
        message = f"{title}: {description}" if description else title
        getattr(self.log, self._levels[severity])(message)


class CollectingNotifier(Notifier):
    """Keeps notifications in memory for a screen to render."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, title, description=None, severity=Severity.INFO):
        self.notifications.append(Notification(title, description, severity))

    def clear(self):
        self.notifications = []


def notify_error(notifier: Notifier, error: GodownError, title: str = "Error") -> None:
    """Report a failed operation as a destructive notification."""
    notifier.notify(title, str(error), Severity.ERROR)


def notify_warnings(notifier: Notifier, warnings) -> None:
    """Report stock warnings (clamped or negative balances) one by one."""
    for warning in warnings:
        notifier.notify(f"Stock warning: {warning.code}", warning.message, Severity.WARNING)
