"""
HTTP-level tests: routing, status codes, the error envelope and the
metrics endpoints.  Service behaviour itself is covered by the service
tests; these check that the thin router layer wires it up correctly.
"""
import pytest
from httpx import AsyncClient


async def _create_category(client: AsyncClient, name: str = "Beverages") -> dict:
    resp = await client.post("/api/v1/categories", json={"name": name, "description": "Drinks"})
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


# ---------------------------------------------------------------------------
# Standard entity surface
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_category_lifecycle(async_client: AsyncClient):
    created = await _create_category(async_client, "Hot Drinks")
    assert created["slug_category"] == "hot-drinks"
    category_id = created["id"]

    resp = await async_client.get(f"/api/v1/categories/{category_id}")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Hot Drinks"

    resp = await async_client.put(f"/api/v1/categories/{category_id}", json={"name": "Warm Drinks"})
    assert resp.status_code == 200
    assert resp.json()["slug_category"] == "warm-drinks"

    resp = await async_client.get(f"/api/v1/categories/{category_id}")
    assert resp.json()["name"] == "Warm Drinks"

    resp = await async_client.post(f"/api/v1/categories/{category_id}/trash")
    assert resp.status_code == 200
    assert resp.json()["deleted_at"] is not None

    resp = await async_client.get(f"/api/v1/categories/{category_id}")
    assert resp.status_code == 404

    resp = await async_client.post(f"/api/v1/categories/{category_id}/restore")
    assert resp.status_code == 200
    assert resp.json()["deleted_at"] is None

    await async_client.post(f"/api/v1/categories/{category_id}/trash")
    resp = await async_client.delete(f"/api/v1/categories/{category_id}/permanent")
    assert resp.status_code == 200
    assert resp.json()["success"] is True


@pytest.mark.asyncio
async def test_list_response_shape(async_client: AsyncClient):
    for name in ("Tea", "Coffee", "Juice"):
        await _create_category(async_client, name)

    resp = await async_client.get("/api/v1/categories", params={"page": 0, "page_size": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert body["page"] == 1
    assert body["page_size"] == 2
    assert body["total_records"] == 3
    assert body["total_pages"] == 2
    assert [c["name"] for c in body["data"]] == ["Tea", "Coffee"]


@pytest.mark.asyncio
async def test_empty_search_returns_empty_list(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/products", params={"search": "shoe"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["data"] == []
    assert body["total_records"] == 0
    assert body["total_pages"] == 0


@pytest.mark.asyncio
async def test_page_size_above_limit_is_rejected(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/categories", params={"page_size": 500})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_not_found_error_envelope(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/products/424242")
    assert resp.status_code == 404
    body = resp.json()
    assert body["status"] == "error"
    assert body["code"] == "PRODUCT_NOT_FOUND"
    assert body["message"] == "Product not found"
    assert body["trace_id"].startswith("FAILED_FIND_BY_ID_PRODUCT-")


@pytest.mark.asyncio
async def test_bulk_endpoints(async_client: AsyncClient):
    first = await _create_category(async_client, "Tea")
    await async_client.post(f"/api/v1/categories/{first['id']}/trash")

    resp = await async_client.post("/api/v1/categories/restore/all")
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    await async_client.post(f"/api/v1/categories/{first['id']}/trash")
    resp = await async_client.delete("/api/v1/categories/permanent/all")
    assert resp.status_code == 200
    resp = await async_client.get("/api/v1/categories/trashed")
    assert resp.json()["total_records"] == 0


@pytest.mark.asyncio
async def test_order_items_are_read_only(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/order-items", json={})
    assert resp.status_code == 405
    resp = await async_client.get("/api/v1/order-items/order/1")
    assert resp.status_code == 200
    assert resp.json() == []


# ---------------------------------------------------------------------------
# Entity extras
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_product_routes(async_client: AsyncClient, catalog):
    payload = {
        "merchant_id": catalog["merchant"].id,
        "category_id": catalog["category"].id,
        "name": "Canvas Sneaker",
        "price": 25000,
        "count_in_stock": 10,
    }
    resp = await async_client.post("/api/v1/products", json=payload)
    assert resp.status_code == 201
    assert resp.json()["slug_product"] == "canvas-sneaker"

    resp = await async_client.get(f"/api/v1/products/merchant/{catalog['merchant'].id}")
    assert resp.json()["total_records"] == 1

    resp = await async_client.get("/api/v1/products/category/Shoes")
    assert [p["name"] for p in resp.json()["data"]] == ["Canvas Sneaker"]


@pytest.mark.asyncio
async def test_product_with_unknown_category(async_client: AsyncClient, catalog):
    payload = {
        "merchant_id": catalog["merchant"].id,
        "category_id": 999,
        "name": "Ghost",
        "price": 1,
    }
    resp = await async_client.post("/api/v1/products", json=payload)
    assert resp.status_code == 404
    assert resp.json()["code"] == "CATEGORY_NOT_FOUND"


@pytest.mark.asyncio
async def test_merchants_by_user(async_client: AsyncClient, catalog):
    resp = await async_client.get(f"/api/v1/merchants/user/{catalog['owner'].id}")
    assert resp.status_code == 200
    assert [m["name"] for m in resp.json()] == ["Corner Store"]


@pytest.mark.asyncio
async def test_duplicate_user_email_is_conflict(async_client: AsyncClient):
    payload = {"firstname": "Ada", "lastname": "L", "email": "ada@example.com", "password": "secret1"}
    assert (await async_client.post("/api/v1/users", json=payload)).status_code == 201
    resp = await async_client.post("/api/v1/users", json=payload)
    assert resp.status_code == 409
    assert resp.json()["code"] == "USER_EMAIL_ALREADY_EXISTS"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_auth_flow(async_client: AsyncClient, catalog):
    register = {"firstname": "Ada", "lastname": "L", "email": "ada@example.com", "password": "secret1"}
    resp = await async_client.post("/api/v1/auth/register", json=register)
    assert resp.status_code == 201
    user_id = resp.json()["id"]

    resp = await async_client.post(
        "/api/v1/auth/login", json={"email": "ada@example.com", "password": "secret1"}
    )
    assert resp.status_code == 200
    tokens = resp.json()

    resp = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert resp.status_code == 200
    assert resp.json()["id"] == user_id

    resp = await async_client.post(
        "/api/v1/auth/refresh-token", json={"refresh_token": tokens["refresh_token"]}
    )
    assert resp.status_code == 200
    assert resp.json()["refresh_token"] != tokens["refresh_token"]


@pytest.mark.asyncio
async def test_password_reset_routes(async_client: AsyncClient, catalog):
    resp = await async_client.post("/api/v1/auth/forgot-password", json={"email": "owner@example.com"})
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    resp = await async_client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
    assert resp.status_code == 404
    assert resp.json()["code"] == "USER_NOT_FOUND"

    resp = await async_client.post(
        "/api/v1/auth/reset-password",
        json={"reset_token": "unknown", "password": "newpass1", "confirm_password": "newpass1"},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "AUTH_INVALID_RESET_TOKEN"


@pytest.mark.asyncio
async def test_me_without_token(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["code"] == "AUTH_INVALID_TOKEN"


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_prometheus_endpoint(async_client: AsyncClient):
    await async_client.get("/api/v1/categories")
    resp = await async_client.get("/metrics")
    assert resp.status_code == 200
    assert 'category_query_service_requests_total{method="find_all",status="success"} 1.0' in resp.text


@pytest.mark.asyncio
async def test_cache_metrics_endpoint(async_client: AsyncClient):
    await async_client.get("/api/v1/categories")
    await async_client.get("/api/v1/categories")
    resp = await async_client.get("/api/v1/metrics/cache")
    assert resp.status_code == 200
    assert resp.json()["cache_info"] == {"hits": 1, "misses": 1, "hit_rate": 50.0}
