"""
Generic query / command pipeline shared by every entity service.

Query path::

    normalize → span → cache GET ─ hit ──────────────────────────→ return
                                  └ miss → repository ─ error → classify → raise
                                                       └ ok → map → cache SET → return

Command path::

    span → validate → repository mutation + commit ─ error → classify → raise
                                                   └ ok → delete per-id key → map → return

Design notes
------------
- Pagination is normalised *before* the cache key is built so equivalent
  requests (page=0 / page=1) share one entry.
- Failures are never cached, and cache problems never fail a request
  (see ``CacheStore``).
- A mutation is committed before its per-id key is deleted, so a reader
  that misses after the delete can only load the new row.
- Mutations only invalidate the per-id entry.  Paginated list entries
  stay until their TTL runs out; bulk restore / purge invalidate nothing.
- There is no per-key request coalescing: concurrent misses for the same
  key each hit the repository and the last cache write wins.
"""
import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, ClassVar

from opentelemetry import trace
from opentelemetry.trace import Tracer
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from pos.cache import CacheStore
from pos.cache_keys import CacheKeys
from pos.config import settings
from pos.error_handler import ErrorClassifier
from pos.errors import FAILED_DELETE_IMAGE, ConflictError, EntityErrors, ErrorSpec, NotFoundError
from pos.observability import MethodCall, MetricsRegistry, traced_call
from pos.schemas import PageEnvelope

logger = logging.getLogger(__name__)

# Failures a repository (or a collaborator of a command) may surface.
REPOSITORY_ERRORS = (SQLAlchemyError, NotFoundError, ConflictError)


def normalize_pagination(page: int | None, page_size: int | None) -> tuple[int, int]:
    """Clamp *page* to >= 1 and replace a non-positive *page_size* with the default."""
    if page is None or page <= 0:
        page = 1
    if page_size is None or page_size <= 0:
        page_size = settings.DEFAULT_PAGE_SIZE
    return page, page_size


class EntityService:
    namespace: ClassVar[str]
    kind: ClassVar[str]
    errors: ClassVar[EntityErrors]
    response_model: ClassVar[type[BaseModel]]
    response_deleted_model: ClassVar[type[BaseModel]]
    service_name: ClassVar[str | None] = None

    def __init__(
        self,
        repository,
        cache: CacheStore,
        metrics: MetricsRegistry,
        tracer: Tracer | None = None,
        ttl: int | None = None,
    ) -> None:
        service_name = self.service_name or f"{self.namespace}_{self.kind}_service"
        self.repository = repository
        self.cache = cache
        self.keys = CacheKeys(self.namespace)
        self.metrics = metrics.for_service(service_name)
        self.tracer = tracer or trace.get_tracer(service_name.replace("_", "-"))
        self.classifier = ErrorClassifier(self.errors)
        self.ttl = ttl if ttl is not None else settings.CACHE_TTL

    @property
    def label(self) -> str:
        return self.namespace.replace("_", " ")

    def _prefix(self, operation: str) -> str:
        return f"FAILED_{operation}_{self.namespace.upper()}"

    def observe(self, method: str, **attributes):
        return traced_call(self.tracer, self.metrics, method, **attributes)

    async def _cached_item(
        self,
        method: str,
        key: str,
        value_type: Any,
        fetch: Callable[[], Awaitable[Any]],
        to_value: Callable[[Any], Any],
        trace_prefix: str,
        default: ErrorSpec,
        **attributes,
    ):
        async with self.observe(method, **attributes) as call:
            cached, found = await self.cache.get(key, value_type)
            if found:
                call.log_success("Data found in cache", **attributes)
                return cached

            try:
                raw = await fetch()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(exc, call, trace_prefix, default, **attributes) from exc

            value = to_value(raw)
            await self.cache.set(key, value, self.ttl, value_type)
            call.log_success(f"Successfully fetched {self.label}", **attributes)
            return value


class QueryService(EntityService):
    kind = "query"

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _cached_page(
        self,
        method: str,
        key: str,
        item_model: type[BaseModel],
        fetch: Callable[[], Awaitable[tuple[list, int]]],
        trace_prefix: str,
        default: ErrorSpec,
        page: int,
        page_size: int,
        search: str,
        **attributes,
    ) -> PageEnvelope:
        envelope_type = PageEnvelope[item_model]
        async with self.observe(
            method, page=page, pageSize=page_size, search=search, **attributes
        ) as call:
            cached, found = await self.cache.get(key, envelope_type)
            if found:
                call.log_success("Data found in cache", page=page, page_size=page_size, search=search)
                return cached

            try:
                rows, total = await fetch()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.pagination(
                    exc, call, trace_prefix, default, page, page_size, search
                ) from exc

            envelope = envelope_type(
                data=[item_model.model_validate(row) for row in rows],
                total_records=total,
            )
            await self.cache.set(key, envelope, self.ttl)
            call.log_success(
                f"Successfully fetched {self.label} page", page=page, page_size=page_size, search=search
            )
            return envelope

    # ------------------------------------------------------------------
    # Standard queries
    # ------------------------------------------------------------------

    async def find_all(self, page: int = 1, page_size: int = 10, search: str = "") -> PageEnvelope:
        page, page_size = normalize_pagination(page, page_size)
        return await self._cached_page(
            "find_all",
            self.keys.all(page, page_size, search),
            self.response_model,
            lambda: self.repository.find_all(page, page_size, search),
            self._prefix("FIND_ALL"),
            self.errors.failed_find_all,
            page,
            page_size,
            search,
        )

    async def find_by_active(self, page: int = 1, page_size: int = 10, search: str = "") -> PageEnvelope:
        page, page_size = normalize_pagination(page, page_size)
        return await self._cached_page(
            "find_by_active",
            self.keys.active(page, page_size, search),
            self.response_deleted_model,
            lambda: self.repository.find_by_active(page, page_size, search),
            self._prefix("FIND_ACTIVE"),
            self.errors.failed_find_active,
            page,
            page_size,
            search,
        )

    async def find_by_trashed(self, page: int = 1, page_size: int = 10, search: str = "") -> PageEnvelope:
        page, page_size = normalize_pagination(page, page_size)
        return await self._cached_page(
            "find_by_trashed",
            self.keys.trashed(page, page_size, search),
            self.response_deleted_model,
            lambda: self.repository.find_by_trashed(page, page_size, search),
            self._prefix("FIND_TRASHED"),
            self.errors.failed_find_trashed,
            page,
            page_size,
            search,
        )

    async def find_by_id(self, entity_id: int):
        return await self._cached_item(
            "find_by_id",
            self.keys.by_id(entity_id),
            self.response_model,
            lambda: self.repository.find_by_id(entity_id),
            self.response_model.model_validate,
            self._prefix("FIND_BY_ID"),
            self.errors.failed_find_by_id,
            **{f"{self.namespace}.id": entity_id},
        )

    async def _find_by_relation(
        self, method: str, relation: str, column: str, value, page: int, page_size: int, search: str,
        fetch: Callable[[int, int], Awaitable[tuple[list, int]]] | None = None,
    ) -> PageEnvelope:
        """Paginated listing filtered by a foreign key (``<namespace>:<relation>:<value>:page...``)."""
        page, page_size = normalize_pagination(page, page_size)
        if fetch is None:
            def fetch(page: int, page_size: int):
                return self.repository.find_by_relation(column, value, page, page_size, search)
        return await self._cached_page(
            method,
            self.keys.by_relation(relation, value, page, page_size, search),
            self.response_model,
            lambda: fetch(page, page_size),
            self._prefix(f"FIND_BY_{relation.upper()}"),
            self.errors.failed_find_by_relation,
            page,
            page_size,
            search,
            **{f"{relation}.id" if isinstance(value, int) else f"{relation}.name": value},
        )


class CommandService(EntityService):
    kind = "command"

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    async def validate(self, call: MethodCall, request: BaseModel, entity_id: int | None = None) -> None:
        """Check collaborators before a create / update.  Raise a classified error to abort."""

    async def create_values(self, call: MethodCall, request: BaseModel) -> dict:
        return request.model_dump()

    async def update_values(self, call: MethodCall, request: BaseModel) -> dict:
        return request.model_dump(exclude_unset=True)

    async def before_delete(self, call: MethodCall, row) -> None:
        """Clean up resources owned by a trashed row about to be purged."""

    async def invalidate(self, entity_id: int) -> None:
        await self.cache.delete(self.keys.by_id(entity_id))

    async def _remove_image(self, call: MethodCall, path: str | None) -> None:
        """
        Delete an image file owned by a row.

        A file that is already gone is logged and ignored; any other
        filesystem error aborts the delete.
        """
        if not path:
            return
        try:
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError as exc:
            logger.error(
                "Failed to delete %s image", self.label,
                extra={"fields": {"image_path": path, "error": str(exc)}},
            )
        except OSError as exc:
            raise self.classifier.file(
                exc, call, self._prefix("DELETE_IMAGE"), FAILED_DELETE_IMAGE, path
            ) from exc
        else:
            logger.debug("Deleted %s image %s", self.label, path)

    # ------------------------------------------------------------------
    # Standard commands
    # ------------------------------------------------------------------

    async def create(self, request: BaseModel):
        async with self.observe("create") as call:
            await self.validate(call, request)
            values = await self.create_values(call, request)
            try:
                row = await self.repository.create(**values)
                await self.repository.commit()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, self._prefix("CREATE"), self.errors.failed_create
                ) from exc

            call.log_success(f"Successfully created {self.label}", **{f"{self.namespace}.id": row.id})
            return self.response_model.model_validate(row)

    async def update(self, entity_id: int, request: BaseModel):
        attributes = {f"{self.namespace}.id": entity_id}
        async with self.observe("update", **attributes) as call:
            await self.validate(call, request, entity_id)
            values = await self.update_values(call, request)
            try:
                row = await self.repository.update(entity_id, **values)
                await self.repository.commit()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, self._prefix("UPDATE"), self.errors.failed_update, **attributes
                ) from exc

            await self.invalidate(entity_id)
            call.log_success(f"Successfully updated {self.label}", **attributes)
            return self.response_model.model_validate(row)

    async def trash(self, entity_id: int):
        attributes = {f"{self.namespace}.id": entity_id}
        async with self.observe("trash", **attributes) as call:
            try:
                row = await self.repository.trash(entity_id)
                await self.repository.commit()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, self._prefix("TRASH"), self.errors.failed_trash, **attributes
                ) from exc

            await self.invalidate(entity_id)
            call.log_success(f"Successfully trashed {self.label}", **attributes)
            return self.response_deleted_model.model_validate(row)

    async def restore(self, entity_id: int):
        attributes = {f"{self.namespace}.id": entity_id}
        async with self.observe("restore", **attributes) as call:
            try:
                row = await self.repository.restore(entity_id)
                await self.repository.commit()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, self._prefix("RESTORE"), self.errors.failed_restore, **attributes
                ) from exc

            await self.invalidate(entity_id)
            call.log_success(f"Successfully restored {self.label}", **attributes)
            return self.response_deleted_model.model_validate(row)

    async def delete_permanent(self, entity_id: int) -> bool:
        attributes = {f"{self.namespace}.id": entity_id}
        async with self.observe("delete_permanent", **attributes) as call:
            try:
                row = await self.repository.find_by_id_trashed(entity_id)
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, self._prefix("FIND_BY_ID_TRASHED"), self.errors.failed_find_by_id,
                    **attributes,
                ) from exc

            await self.before_delete(call, row)

            try:
                await self.repository.delete_permanent(entity_id)
                await self.repository.commit()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, self._prefix("DELETE_PERMANENT"), self.errors.failed_delete_permanent,
                    **attributes,
                ) from exc

            await self.invalidate(entity_id)
            call.log_success(f"{self.label.capitalize()} deleted permanently", **attributes)
            return True

    async def restore_all(self) -> bool:
        async with self.observe("restore_all") as call:
            try:
                success = await self.repository.restore_all()
                await self.repository.commit()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, self._prefix("RESTORE_ALL"), self.errors.failed_restore_all
                ) from exc

            call.log_success(f"All trashed {self.label} rows restored", success=success)
            return success

    async def delete_all_permanent(self) -> bool:
        async with self.observe("delete_all_permanent") as call:
            try:
                success = await self.repository.delete_all_permanent()
                await self.repository.commit()
            except REPOSITORY_ERRORS as exc:
                raise self.classifier.repository(
                    exc, call, self._prefix("DELETE_ALL_PERMANENT"),
                    self.errors.failed_delete_all_permanent,
                ) from exc

            call.log_success(f"All trashed {self.label} rows deleted permanently", success=success)
            return success
