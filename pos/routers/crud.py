"""
Router factory for the standard entity endpoints.

Every entity exposes the same listing / lookup / soft-delete surface, so
the routes are declared once here and bound to a query-service provider
and (unless the entity is read-only) a command-service provider.
Domain errors raised by the services are rendered by the application's
``DomainError`` handler.
"""
import math
from typing import Callable

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pos.dependencies import PaginationParams
from pos.schemas import PageEnvelope, PaginatedResponse, StatusResponse
from pos.services.base import normalize_pagination


def paginated(envelope: PageEnvelope, page: int, page_size: int) -> PaginatedResponse:
    page, page_size = normalize_pagination(page, page_size)
    return PaginatedResponse(
        data=envelope.data,
        total_records=envelope.total_records,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(envelope.total_records / page_size) if envelope.total_records else 0,
    )


def crud_router(
    prefix: str,
    tag: str,
    query_service: Callable,
    command_service: Callable | None = None,
    create_schema: type[BaseModel] | None = None,
    update_schema: type[BaseModel] | None = None,
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("", response_model=PaginatedResponse)
    async def find_all(pagination: PaginationParams = Depends(), service=Depends(query_service)):
        envelope = await service.find_all(pagination.page, pagination.page_size, pagination.search)
        return paginated(envelope, pagination.page, pagination.page_size)

    @router.get("/active", response_model=PaginatedResponse)
    async def find_by_active(pagination: PaginationParams = Depends(), service=Depends(query_service)):
        envelope = await service.find_by_active(pagination.page, pagination.page_size, pagination.search)
        return paginated(envelope, pagination.page, pagination.page_size)

    @router.get("/trashed", response_model=PaginatedResponse)
    async def find_by_trashed(pagination: PaginationParams = Depends(), service=Depends(query_service)):
        envelope = await service.find_by_trashed(pagination.page, pagination.page_size, pagination.search)
        return paginated(envelope, pagination.page, pagination.page_size)

    @router.get("/{entity_id}")
    async def find_by_id(entity_id: int, service=Depends(query_service)):
        return await service.find_by_id(entity_id)

    if command_service is None:
        return router

    @router.post("", status_code=201)
    async def create(data: create_schema, service=Depends(command_service)):
        return await service.create(data)

    @router.put("/{entity_id}")
    async def update(entity_id: int, data: update_schema, service=Depends(command_service)):
        return await service.update(entity_id, data)

    @router.post("/{entity_id}/trash")
    async def trash(entity_id: int, service=Depends(command_service)):
        return await service.trash(entity_id)

    @router.post("/{entity_id}/restore")
    async def restore(entity_id: int, service=Depends(command_service)):
        return await service.restore(entity_id)

    @router.delete("/{entity_id}/permanent", response_model=StatusResponse)
    async def delete_permanent(entity_id: int, service=Depends(command_service)):
        success = await service.delete_permanent(entity_id)
        return StatusResponse(message=f"{tag.capitalize()} deleted permanently", success=success)

    @router.post("/restore/all", response_model=StatusResponse)
    async def restore_all(service=Depends(command_service)):
        success = await service.restore_all()
        return StatusResponse(message=f"All trashed {tag} restored", success=success)

    @router.delete("/permanent/all", response_model=StatusResponse)
    async def delete_all_permanent(service=Depends(command_service)):
        success = await service.delete_all_permanent()
        return StatusResponse(message=f"All trashed {tag} deleted permanently", success=success)

    return router
