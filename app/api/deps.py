from fastapi import Request

from app.core.config import Settings
from app.services.image_store import LocalImageStore
from app.services.ingestion import IngestionOrchestrator
from app.services.request_repository import RequestRepository


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_orchestrator(request: Request) -> IngestionOrchestrator:
    return request.app.state.orchestrator


def get_image_store(request: Request) -> LocalImageStore:
    return request.app.state.image_store


def get_repository(request: Request) -> RequestRepository:
    return request.app.state.repository
