"""
API dependencies
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.core import Operator, require_role, require_operator
from app.services.blob_storage import BlobStorage, get_blob_storage
from app.services.dispatch import DispatchCoordinator
from app.services.intake import AccidentIntakeService
from app.services.link_tokens import LinkTokenService
from app.services.location import Geocoder, get_geocoder
from app.services.messaging import MessagingTransport, get_messaging_transport
from app.services.notifier import ClientNotifier
from app.services.providers import TowProviderDirectory, get_provider_directory
from app.services.status_machine import ReportStatusMachine


def get_link_service(
    db: Session = Depends(get_db),
    messaging: MessagingTransport = Depends(get_messaging_transport),
) -> LinkTokenService:
    return LinkTokenService(db, messaging=messaging)


def get_intake_service(
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
    links: LinkTokenService = Depends(get_link_service),
) -> AccidentIntakeService:
    return AccidentIntakeService(db, storage=storage, links=links)


def get_dispatch_coordinator(
    db: Session = Depends(get_db),
    directory: TowProviderDirectory = Depends(get_provider_directory),
    messaging: MessagingTransport = Depends(get_messaging_transport),
) -> DispatchCoordinator:
    return DispatchCoordinator(db, directory=directory, messaging=messaging)


def get_client_notifier(
    db: Session = Depends(get_db),
    messaging: MessagingTransport = Depends(get_messaging_transport),
) -> ClientNotifier:
    return ClientNotifier(db, messaging=messaging)


def get_status_machine(db: Session = Depends(get_db)) -> ReportStatusMachine:
    return ReportStatusMachine(db)


__all__ = [
    "get_db",
    "Operator",
    "require_role",
    "require_operator",
    "get_geocoder",
    "Geocoder",
    "get_link_service",
    "get_intake_service",
    "get_dispatch_coordinator",
    "get_client_notifier",
    "get_status_machine",
]
