"""Request dependencies for application-scoped services.

The lifespan handler builds the notifier and report scheduler once and
stores them on ``app.state``. Tests replace them via dependency overrides.
"""

from fastapi import Request

from sugar_monitor.services.notifier import Notifier
from sugar_monitor.services.scheduler import ReportScheduler


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_report_scheduler(request: Request) -> ReportScheduler:
    return request.app.state.report_scheduler
