"""FastAPI dependencies: services are built once in the lifespan and read off app.state."""

from fastapi import Request

from src.ar_registry.application.service import RegistryService


def get_registry_service(request: Request) -> RegistryService:
    return request.app.state.registry


def get_auxiliary_documents(request: Request) -> dict[str, str]:
    return getattr(request.app.state, "documents", {})
