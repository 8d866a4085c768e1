"""
Stats services — monthly and yearly sales figures behind the same
cache-aside pipeline as the entity lookups.

Four shapes are offered per family:

``find_monthly_total(year, month)``  the month and the one before it
``find_yearly_total(year)``          the year and the one before it
``find_monthly(year)``               every month of the year
``find_yearly(year)``                the last ``YEARLY_WINDOW`` years up to *year*

Every period is present in the result, oldest first, with zero count and
amount when nothing was sold.  A query may be scoped to one merchant or,
for cashiers and categories, to one entity id; the scope is part of the
cache key (see ``StatsKeys``).
"""
from typing import ClassVar

from pos.cache_keys import StatsKeys
from pos.errors import (
    CASHIER_ERRORS,
    CASHIER_STATS_ERRORS,
    CATEGORY_ERRORS,
    CATEGORY_STATS_ERRORS,
    ORDER_ERRORS,
    ORDER_STATS_ERRORS,
    TRANSACTION_ERRORS,
    TRANSACTION_FAILED_STATS_ERRORS,
    TRANSACTION_SUCCESS_STATS_ERRORS,
    StatsErrors,
)
from pos.schemas import StatsMonth, StatsYear
from pos.services.base import EntityService

YEARLY_WINDOW = 5

Totals = dict[tuple[int, int], tuple[int, int]]


def _month(totals: Totals, year: int, month: int) -> StatsMonth:
    count, total = totals.get((year, month), (0, 0))
    return StatsMonth(year=year, month=month, count=count, total_amount=total)


def _year(totals: Totals, year: int) -> StatsYear:
    count, total = totals.get((year, 0), (0, 0))
    return StatsYear(year=year, count=count, total_amount=total)


class StatsQueryService(EntityService):
    kind = "stats"
    stats_errors: ClassVar[StatsErrors]
    outcome: ClassVar[str | None] = None
    scopes: ClassVar[tuple[str, ...]] = ("merchant",)

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.stats_keys = StatsKeys(self.namespace, self.outcome)

    @property
    def label(self) -> str:
        return f"{super().label} stats"

    def _attributes(self, scope: str | None, scope_id: int | None, **period) -> dict:
        if scope is None:
            return period
        if scope not in self.scopes:
            raise ValueError(f"{self.label} cannot be scoped by {scope!r}")
        name = self.namespace if scope == "id" else scope
        return {**period, f"{name}.id": scope_id}

    def _prefix(self, operation: str) -> str:
        outcome = f"_{self.outcome.upper()}" if self.outcome else ""
        return f"FAILED_{operation}_{self.namespace.upper()}{outcome}_STATS"

    async def find_monthly_total(
        self, year: int, month: int, scope: str | None = None, scope_id: int | None = None
    ) -> list[StatsMonth]:
        attributes = self._attributes(scope, scope_id, year=year, month=month)
        previous = (year, month - 1) if month > 1 else (year - 1, 12)
        return await self._cached_item(
            "find_monthly_total",
            self.stats_keys.monthly_total(year, month, scope, scope_id),
            list[StatsMonth],
            lambda: self.repository.totals(previous[0], year, True, scope, scope_id),
            lambda totals: [_month(totals, *previous), _month(totals, year, month)],
            self._prefix("FIND_MONTHLY_TOTAL"),
            self.stats_errors.failed_monthly_total,
            **attributes,
        )

    async def find_yearly_total(
        self, year: int, scope: str | None = None, scope_id: int | None = None
    ) -> list[StatsYear]:
        attributes = self._attributes(scope, scope_id, year=year)
        return await self._cached_item(
            "find_yearly_total",
            self.stats_keys.yearly_total(year, scope, scope_id),
            list[StatsYear],
            lambda: self.repository.totals(year - 1, year, False, scope, scope_id),
            lambda totals: [_year(totals, year - 1), _year(totals, year)],
            self._prefix("FIND_YEARLY_TOTAL"),
            self.stats_errors.failed_yearly_total,
            **attributes,
        )

    async def find_monthly(
        self, year: int, scope: str | None = None, scope_id: int | None = None
    ) -> list[StatsMonth]:
        attributes = self._attributes(scope, scope_id, year=year)
        return await self._cached_item(
            "find_monthly",
            self.stats_keys.monthly(year, scope, scope_id),
            list[StatsMonth],
            lambda: self.repository.totals(year, year, True, scope, scope_id),
            lambda totals: [_month(totals, year, month) for month in range(1, 13)],
            self._prefix("FIND_MONTHLY"),
            self.stats_errors.failed_monthly,
            **attributes,
        )

    async def find_yearly(
        self, year: int, scope: str | None = None, scope_id: int | None = None
    ) -> list[StatsYear]:
        attributes = self._attributes(scope, scope_id, year=year)
        first = year - YEARLY_WINDOW + 1
        return await self._cached_item(
            "find_yearly",
            self.stats_keys.yearly(year, scope, scope_id),
            list[StatsYear],
            lambda: self.repository.totals(first, year, False, scope, scope_id),
            lambda totals: [_year(totals, y) for y in range(first, year + 1)],
            self._prefix("FIND_YEARLY"),
            self.stats_errors.failed_yearly,
            **attributes,
        )


class CashierStatsService(StatsQueryService):
    namespace = "cashier"
    errors = CASHIER_ERRORS
    stats_errors = CASHIER_STATS_ERRORS
    scopes = ("merchant", "id")


class CategoryStatsService(StatsQueryService):
    namespace = "category"
    errors = CATEGORY_ERRORS
    stats_errors = CATEGORY_STATS_ERRORS
    scopes = ("merchant", "id")


class OrderStatsService(StatsQueryService):
    namespace = "order"
    errors = ORDER_ERRORS
    stats_errors = ORDER_STATS_ERRORS


class TransactionSuccessStatsService(StatsQueryService):
    namespace = "transaction"
    outcome = "success"
    service_name = "transaction_success_stats_service"
    errors = TRANSACTION_ERRORS
    stats_errors = TRANSACTION_SUCCESS_STATS_ERRORS


class TransactionFailedStatsService(StatsQueryService):
    namespace = "transaction"
    outcome = "failed"
    service_name = "transaction_failed_stats_service"
    errors = TRANSACTION_ERRORS
    stats_errors = TRANSACTION_FAILED_STATS_ERRORS
