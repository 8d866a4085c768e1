"""
Sales statistics tests: the aggregates themselves against SQLite, and the
cache-aside behaviour they share with the entity lookups.
"""
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient
from opentelemetry.trace import StatusCode
from sqlalchemy.exc import OperationalError

from pos.errors import CASHIER_STATS_ERRORS, DomainError
from pos.models import Cashier, Merchant, Order, OrderItem, Product, Transaction
from pos.repositories import (
    CashierStatsRepository,
    CategoryStatsRepository,
    FailedTransactionStatsRepository,
    OrderStatsRepository,
    SuccessfulTransactionStatsRepository,
)
from pos.schemas import StatsMonth, StatsYear
from pos.services.stats_service import (
    CashierStatsService,
    CategoryStatsService,
    OrderStatsService,
    TransactionFailedStatsService,
    TransactionSuccessStatsService,
)


def _at(year: int, month: int, day: int = 10) -> datetime:
    return datetime(year, month, day, 12, 0, tzinfo=timezone.utc)


class FailingStatsRepository:
    async def totals(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is unavailable"))


@pytest_asyncio.fixture
async def sales(db_session, catalog) -> dict:
    """
    Two cashiers of one merchant with orders spread over 2022-2024.

    2024-01  1000 (front)
    2024-03  2500 (front), 500 (back), plus a trashed 9999
    2023-12   700 (front)
    2022-06   300 (back)
    """
    merchant = catalog["merchant"]
    front = Cashier(merchant_id=merchant.id, user_id=catalog["owner"].id, name="Front")
    back = Cashier(merchant_id=merchant.id, user_id=catalog["owner"].id, name="Back")
    db_session.add_all([front, back])
    await db_session.flush()

    def order(cashier: Cashier, total: int, created_at: datetime, **values) -> Order:
        return Order(
            merchant_id=merchant.id, cashier_id=cashier.id, total_price=total,
            created_at=created_at, **values,
        )

    orders = [
        order(front, 1000, _at(2024, 1)),
        order(front, 2500, _at(2024, 3)),
        order(back, 500, _at(2024, 3, 20)),
        order(front, 9999, _at(2024, 3, 12), deleted_at=_at(2024, 3, 13)),
        order(front, 700, _at(2023, 12)),
        order(back, 300, _at(2022, 6)),
    ]
    db_session.add_all(orders)
    await db_session.flush()

    shoe = Product(
        merchant_id=merchant.id, category_id=catalog["category"].id, name="Runner",
        slug_product="runner", price=500, count_in_stock=10,
    )
    db_session.add(shoe)
    await db_session.flush()
    db_session.add_all([
        OrderItem(order_id=orders[1].id, product_id=shoe.id, quantity=2, price=500,
                  created_at=_at(2024, 3)),
        OrderItem(order_id=orders[0].id, product_id=shoe.id, quantity=1, price=500,
                  created_at=_at(2024, 1)),
        Transaction(order_id=orders[1].id, merchant_id=merchant.id, payment_method="cash",
                    amount=2500, payment_status="success", created_at=_at(2024, 3)),
        Transaction(order_id=orders[2].id, merchant_id=merchant.id, payment_method="card",
                    amount=500, payment_status="failed", created_at=_at(2024, 3, 20)),
        Transaction(order_id=orders[0].id, merchant_id=merchant.id, payment_method="card",
                    amount=1000, payment_status="pending", created_at=_at(2024, 1)),
    ])
    await db_session.commit()
    return {"merchant": merchant, "front": front, "back": back, "category": catalog["category"]}


@pytest.fixture
def cashier_stats(db_session, cache, metrics, tracer, counting):
    return CashierStatsService(counting(CashierStatsRepository(db_session)), cache, metrics, tracer=tracer)


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_monthly_total_covers_month_and_the_one_before(sales, cashier_stats):
    result = await cashier_stats.find_monthly_total(2024, 3)
    assert result == [
        StatsMonth(year=2024, month=2, count=0, total_amount=0),
        StatsMonth(year=2024, month=3, count=2, total_amount=3000),
    ]


@pytest.mark.asyncio
async def test_monthly_total_in_january_reaches_back_a_year(sales, cashier_stats):
    result = await cashier_stats.find_monthly_total(2024, 1)
    assert [(m.year, m.month, m.total_amount) for m in result] == [(2023, 12, 700), (2024, 1, 1000)]


@pytest.mark.asyncio
async def test_yearly_total_covers_year_and_the_one_before(sales, cashier_stats):
    result = await cashier_stats.find_yearly_total(2024)
    assert result == [
        StatsYear(year=2023, count=1, total_amount=700),
        StatsYear(year=2024, count=3, total_amount=4000),
    ]


@pytest.mark.asyncio
async def test_monthly_lists_every_month(sales, cashier_stats):
    result = await cashier_stats.find_monthly(2024)
    assert [m.month for m in result] == list(range(1, 13))
    assert {m.month: m.total_amount for m in result if m.total_amount} == {1: 1000, 3: 3000}
    assert sum(m.count for m in result) == 3


@pytest.mark.asyncio
async def test_yearly_lists_a_five_year_window(sales, cashier_stats):
    result = await cashier_stats.find_yearly(2024)
    assert [(y.year, y.count, y.total_amount) for y in result] == [
        (2020, 0, 0), (2021, 0, 0), (2022, 1, 300), (2023, 1, 700), (2024, 3, 4000),
    ]


@pytest.mark.asyncio
async def test_scopes_by_cashier_and_merchant(db_session, sales, cashier_stats, fake_redis):
    front = await cashier_stats.find_monthly_total(2024, 3, "id", sales["front"].id)
    back = await cashier_stats.find_yearly(2024, "id", sales["back"].id)

    assert front[-1].total_amount == 2500
    assert [(y.year, y.total_amount) for y in back if y.total_amount] == [(2022, 300), (2024, 500)]
    assert f"cashier:stats:month:3:year:2024:id:{sales['front'].id}" in fake_redis.store

    other = Merchant(user_id=sales["merchant"].user_id, name="Other Shop")
    db_session.add(other)
    await db_session.commit()
    empty = await cashier_stats.find_yearly_total(2024, "merchant", other.id)
    mine = await cashier_stats.find_yearly_total(2024, "merchant", sales["merchant"].id)
    assert [y.total_amount for y in empty] == [0, 0]
    assert [y.total_amount for y in mine] == [700, 4000]


@pytest.mark.asyncio
async def test_category_sales_sum_line_amounts(db_session, sales, cache, metrics, tracer):
    service = CategoryStatsService(CategoryStatsRepository(db_session), cache, metrics, tracer=tracer)

    monthly = await service.find_monthly(2024, "id", sales["category"].id)
    assert {m.month: (m.count, m.total_amount) for m in monthly if m.count} == {
        1: (1, 500), 3: (1, 1000),
    }
    assert [m.total_amount for m in await service.find_monthly_total(2024, 3, "id", 999)] == [0, 0]


@pytest.mark.asyncio
async def test_order_revenue_ignores_trashed_orders(db_session, sales, cache, metrics, tracer):
    service = OrderStatsService(OrderStatsRepository(db_session), cache, metrics, tracer=tracer)
    result = await service.find_monthly_total(2024, 3)
    assert result[-1].total_amount == 3000


@pytest.mark.asyncio
async def test_order_stats_cannot_be_scoped_by_id(db_session, cache, metrics):
    service = OrderStatsService(OrderStatsRepository(db_session), cache, metrics)
    with pytest.raises(ValueError):
        await service.find_monthly(2024, "id", 1)


@pytest.mark.asyncio
async def test_transaction_stats_split_by_outcome(db_session, sales, cache, metrics, tracer, fake_redis):
    succeeded = TransactionSuccessStatsService(
        SuccessfulTransactionStatsRepository(db_session), cache, metrics, tracer=tracer
    )
    failed = TransactionFailedStatsService(
        FailedTransactionStatsRepository(db_session), cache, metrics, tracer=tracer
    )

    ok = await succeeded.find_monthly_total(2024, 3)
    bad = await failed.find_monthly_total(2024, 3)

    assert ok[-1].total_amount == 2500
    assert bad[-1].total_amount == 500
    assert "transaction:stats:success:month:3:year:2024" in fake_redis.store
    assert "transaction:stats:failed:month:3:year:2024" in fake_redis.store
    yearly = await succeeded.find_yearly_total(2024)
    assert yearly[-1].count == 1


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_stats_miss_then_hit(sales, cashier_stats, fake_redis):
    first = await cashier_stats.find_monthly_total(2024, 3)
    second = await cashier_stats.find_monthly_total(2024, 3)

    assert first == second
    assert cashier_stats.repository.calls["totals"] == 1
    assert fake_redis.ttls["cashier:stats:month:3:year:2024"] == 300


@pytest.mark.asyncio
async def test_each_shape_has_its_own_key(sales, cashier_stats, fake_redis):
    await cashier_stats.find_monthly_total(2024, 3)
    await cashier_stats.find_yearly_total(2024)
    await cashier_stats.find_monthly(2024)
    await cashier_stats.find_yearly(2024)

    assert sorted(fake_redis.store) == [
        "cashier:stats:month:3:year:2024",
        "cashier:stats:monthly:year:2024",
        "cashier:stats:year:2024",
        "cashier:stats:yearly:year:2024",
    ]
    assert cashier_stats.repository.calls["totals"] == 4


@pytest.mark.asyncio
async def test_corrupt_stats_entry_is_recomputed(sales, cashier_stats, fake_redis):
    fake_redis.store["cashier:stats:year:2024"] = b'{"not": "a list"}'

    result = await cashier_stats.find_yearly_total(2024)

    assert result[-1].total_amount == 4000
    assert cashier_stats.repository.calls["totals"] == 1


@pytest.mark.asyncio
async def test_stats_failure_is_classified_and_not_cached(cache, metrics, tracer, span_exporter, fake_redis):
    service = CashierStatsService(FailingStatsRepository(), cache, metrics, tracer=tracer)

    with pytest.raises(DomainError) as excinfo:
        await service.find_monthly_total(2024, 3)

    assert excinfo.value.spec == CASHIER_STATS_ERRORS.failed_monthly_total
    assert excinfo.value.trace_id.startswith("FAILED_FIND_MONTHLY_TOTAL_CASHIER_STATS-")
    assert fake_redis.store == {}

    span = span_exporter.get_finished_spans()[-1]
    assert span.name == "find_monthly_total"
    assert span.status.status_code == StatusCode.ERROR
    assert span.attributes["year"] == 2024
    value = metrics.registry.get_sample_value(
        "cashier_stats_service_requests_total",
        {"method": "find_monthly_total", "status": "find_monthly_total_error_repository_error"},
    )
    assert value == 1


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_stats_routes(async_client: AsyncClient, sales):
    resp = await async_client.get("/api/v1/cashiers/stats/monthly", params={"year": 2024})
    assert resp.status_code == 200
    assert len(resp.json()) == 12

    resp = await async_client.get(
        f"/api/v1/cashiers/{sales['front'].id}/stats/yearly-total", params={"year": 2024}
    )
    assert [row["total_amount"] for row in resp.json()] == [700, 3500]

    resp = await async_client.get(
        "/api/v1/orders/stats/monthly-total",
        params={"year": 2024, "month": 3, "merchant_id": sales["merchant"].id},
    )
    assert resp.json()[-1] == {"year": 2024, "month": 3, "count": 2, "total_amount": 3000}

    resp = await async_client.get(
        "/api/v1/transactions/stats/failed/yearly", params={"year": 2024}
    )
    assert resp.json()[-1]["total_amount"] == 500

    resp = await async_client.get(
        f"/api/v1/categories/{sales['category'].id}/stats/monthly-total",
        params={"year": 2024, "month": 1},
    )
    assert resp.json()[-1]["total_amount"] == 500


@pytest.mark.asyncio
async def test_stats_routes_validate_the_period(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/orders/stats/monthly-total", params={"year": 2024, "month": 13})
    assert resp.status_code == 422
    resp = await async_client.get("/api/v1/orders/stats/yearly")
    assert resp.status_code == 422
