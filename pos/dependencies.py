from typing import Callable

from fastapi import Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pos.cache import CacheStore
from pos.config import settings
from pos.database import get_db
from pos.messaging import EmailPublisher
from pos.observability import MetricsRegistry
from pos.repositories import (
    CategoryRepository,
    MerchantRepository,
    ProductRepository,
    RefreshTokenRepository,
    ResetTokenRepository,
    RoleRepository,
    UserRepository,
)
from pos.services.auth_service import AuthService
from pos.services.product_service import ProductCommandService


class PaginationParams:
    """
    Reusable FastAPI dependency that parses the listing query parameters.

    Usage in a router::

        @router.get("")
        async def list_products(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    page:
        1-based page number.  Values below 1 are accepted here and
        normalised by the query service, so ``page=0`` and ``page=1``
        share one cache entry.
    page_size:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``.
        Non-positive values fall back to the default page size in the
        query service.
    search:
        Case-insensitive substring filter; empty means no filter.
    """

    def __init__(
        self,
        page: int = Query(
            1,
            description="Page number (1-based).",
        ),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
        search: str = Query(
            "",
            max_length=255,
            description="Free-text filter applied to the entity's searchable columns.",
        ),
    ) -> None:
        self.page = page
        # Respect the application-level hard ceiling even if the schema
        # already validates le=100, so a settings change is sufficient.
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)
        self.search = search


# ---------------------------------------------------------------------------
# Shared process resources (created in the lifespan, kept on app.state)
# ---------------------------------------------------------------------------

def get_cache(request: Request) -> CacheStore:
    return request.app.state.cache


def get_metrics(request: Request) -> MetricsRegistry:
    return request.app.state.metrics


def get_publisher(request: Request) -> EmailPublisher:
    return request.app.state.publisher


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------

def service_provider(service_cls: type, repository_cls: type) -> Callable:
    """Build a dependency that constructs *service_cls* over a request-scoped repository."""

    def provide(
        db: AsyncSession = Depends(get_db),
        cache: CacheStore = Depends(get_cache),
        metrics: MetricsRegistry = Depends(get_metrics),
    ):
        return service_cls(repository_cls(db), cache, metrics)

    provide.__name__ = f"get_{service_cls.__name__}"
    return provide


def get_product_command_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
    metrics: MetricsRegistry = Depends(get_metrics),
) -> ProductCommandService:
    return ProductCommandService(
        ProductRepository(db),
        cache,
        metrics,
        category_repository=CategoryRepository(db),
        merchant_repository=MerchantRepository(db),
    )


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache),
    metrics: MetricsRegistry = Depends(get_metrics),
    publisher: EmailPublisher = Depends(get_publisher),
) -> AuthService:
    return AuthService(
        UserRepository(db),
        RoleRepository(db),
        RefreshTokenRepository(db),
        ResetTokenRepository(db),
        cache,
        metrics,
        publisher,
    )


def bearer_token(authorization: str = Header("", description="Bearer <access token>")) -> str:
    scheme, _, token = authorization.partition(" ")
    return token if scheme.lower() == "bearer" else ""
