"""
Services package
"""
from app.services.link_tokens import LinkTokenService
from app.services.intake import AccidentIntakeService
from app.services.status_machine import ReportStatusMachine
from app.services.dispatch import DispatchCoordinator
from app.services.notifier import ClientNotifier

__all__ = [
    "LinkTokenService",
    "AccidentIntakeService",
    "ReportStatusMachine",
    "DispatchCoordinator",
    "ClientNotifier",
]
