"""
Sales statistics routes.

``add_stats_routes`` mounts the four statistics shapes on an entity
router under *path*::

    GET <path>/monthly-total?year=&month=[&merchant_id=]
    GET <path>/yearly-total?year=[&merchant_id=]
    GET <path>/monthly?year=[&merchant_id=]
    GET <path>/yearly?year=[&merchant_id=]

With ``by_id`` the same shapes are also served per entity under
``/{entity_id}<path>/...``.
"""
from typing import Annotated, Callable

from fastapi import APIRouter, Depends, Query

from pos.schemas import StatsMonth, StatsYear

Year = Annotated[int, Query(ge=1, le=9999, description="Calendar year.")]
Month = Annotated[int, Query(ge=1, le=12, description="Calendar month (1-12).")]
MerchantId = Annotated[int | None, Query(description="Only count sales of this merchant.")]


def _scope(merchant_id: int | None) -> tuple[str | None, int | None]:
    return ("merchant", merchant_id) if merchant_id is not None else (None, None)


def add_stats_routes(
    router: APIRouter, provider: Callable, path: str = "/stats", by_id: bool = False
) -> APIRouter:
    @router.get(f"{path}/monthly-total", response_model=list[StatsMonth])
    async def find_monthly_total(
        year: Year, month: Month, merchant_id: MerchantId = None, service=Depends(provider)
    ):
        return await service.find_monthly_total(year, month, *_scope(merchant_id))

    @router.get(f"{path}/yearly-total", response_model=list[StatsYear])
    async def find_yearly_total(
        year: Year, merchant_id: MerchantId = None, service=Depends(provider)
    ):
        return await service.find_yearly_total(year, *_scope(merchant_id))

    @router.get(f"{path}/monthly", response_model=list[StatsMonth])
    async def find_monthly(year: Year, merchant_id: MerchantId = None, service=Depends(provider)):
        return await service.find_monthly(year, *_scope(merchant_id))

    @router.get(f"{path}/yearly", response_model=list[StatsYear])
    async def find_yearly(year: Year, merchant_id: MerchantId = None, service=Depends(provider)):
        return await service.find_yearly(year, *_scope(merchant_id))

    if not by_id:
        return router

    @router.get(f"/{{entity_id}}{path}/monthly-total", response_model=list[StatsMonth])
    async def find_monthly_total_by_id(
        entity_id: int, year: Year, month: Month, service=Depends(provider)
    ):
        return await service.find_monthly_total(year, month, "id", entity_id)

    @router.get(f"/{{entity_id}}{path}/yearly-total", response_model=list[StatsYear])
    async def find_yearly_total_by_id(entity_id: int, year: Year, service=Depends(provider)):
        return await service.find_yearly_total(year, "id", entity_id)

    @router.get(f"/{{entity_id}}{path}/monthly", response_model=list[StatsMonth])
    async def find_monthly_by_id(entity_id: int, year: Year, service=Depends(provider)):
        return await service.find_monthly(year, "id", entity_id)

    @router.get(f"/{{entity_id}}{path}/yearly", response_model=list[StatsYear])
    async def find_yearly_by_id(entity_id: int, year: Year, service=Depends(provider)):
        return await service.find_yearly(year, "id", entity_id)

    return router
