import os
import uuid
from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest
import stripe

from book_orders.db.db_connection import get_async_db
from book_orders.main import app
from book_orders.repositories.payment_repository import get_payment_gateway


def bearer(username, scopes):
    payload = {
        "sub": username,
        "scopes": scopes,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    token = jwt.encode(payload, os.getenv("SECRET"), algorithm=os.getenv("ALGORITHM"))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_maker, payment_gateway, seeded):
    async def override_get_async_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def test_place_order(client, seeded, payment_gateway):
    response = await client.post(
        "/api/v1/order/place-order",
        json={"bookIds": [str(seeded.dune_id), str(seeded.emma_id)]},
        headers=bearer("alice", ["user"]),
    )

    assert response.status_code == 201
    body = response.json()
    assert set(body) == {"orderId", "paymentUrl"}
    assert body["paymentUrl"] == "https://checkout.test/pay/cs_test_1"
    assert payment_gateway.calls[0]["metadata"]["orderId"] == body["orderId"]


async def test_place_order_requires_a_token(client, seeded):
    response = await client.post(
        "/api/v1/order/place-order", json={"bookIds": [str(seeded.dune_id)]}
    )
    assert response.status_code == 401


async def test_place_order_with_invalid_token(client, seeded):
    response = await client.post(
        "/api/v1/order/place-order",
        json={"bookIds": [str(seeded.dune_id)]},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401
    assert response.json() == {"detail": "Could not validate credentials"}


async def test_place_order_with_unknown_books(client, seeded):
    response = await client.post(
        "/api/v1/order/place-order",
        json={"bookIds": [str(uuid.uuid4())]},
        headers=bearer("alice", ["user"]),
    )
    assert response.status_code == 404
    assert response.json() == {"detail": "No books found !"}


@pytest.mark.parametrize(
    "body",
    [{"bookIds": []}, {}, {"bookIds": ["not-a-uuid"]}, {"bookIds": [], "extra": 1}],
)
async def test_place_order_validates_body(client, seeded, body):
    response = await client.post(
        "/api/v1/order/place-order", json=body, headers=bearer("alice", ["user"])
    )
    assert response.status_code == 422


async def test_place_order_payment_provider_error(client, seeded, payment_gateway):
    payment_gateway.error = stripe.APIConnectionError("connection refused")

    response = await client.post(
        "/api/v1/order/place-order",
        json={"bookIds": [str(seeded.dune_id)]},
        headers=bearer("alice", ["user"]),
    )

    assert response.status_code == 502
    assert response.json()["detail"].startswith("Payment provider error")


async def test_all_orders_requires_admin_scope(client, seeded):
    response = await client.get(
        "/api/v1/order/all-orders", headers=bearer("alice", ["user"])
    )
    assert response.status_code == 401
    assert response.json() == {"detail": "Not enough permissions"}


async def test_all_orders(client, seeded):
    response = await client.get(
        "/api/v1/order/all-orders",
        params={"page": 2, "limit": 5, "sortBy": "amount", "unknownKey": "x"},
        headers=bearer("admin", ["user", "admin"]),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["meta"] == {"total": 12, "page": 2, "limit": 5, "totalPages": 3}
    assert [order["amount"] for order in body["data"]] == [
        "35.00",
        "40.00",
        "45.00",
        "50.00",
        "55.00",
    ]


async def test_my_orders(client, seeded):
    response = await client.get(
        "/api/v1/order/my-orders",
        params={"fields": "amount,paymentStatus"},
        headers=bearer("bob", ["user"]),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["total"] == 2
    for order in body["data"]:
        assert order["paymentStatus"] == "PAID"
        assert order["user"]["email"] == "bob@example.com"
        assert "createdAt" not in order


@pytest.mark.parametrize("price_key", ["minPrice", "maxPrice"])
@pytest.mark.parametrize("price", ["NaN", "Infinity", "-Infinity", "sNaN"])
async def test_all_orders_ignores_non_finite_price_bounds(client, seeded, price_key, price):
    response = await client.get(
        "/api/v1/order/all-orders",
        params={price_key: price},
        headers=bearer("admin", ["user", "admin"]),
    )

    assert response.status_code == 200
    assert response.json()["meta"]["total"] == 12


async def test_all_orders_with_out_of_range_page(client, seeded):
    response = await client.get(
        "/api/v1/order/all-orders",
        params={"page": "10000000000000000000", "limit": 5},
        headers=bearer("admin", ["user", "admin"]),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["page"] == 1
    assert len(body["data"]) == 5


async def test_all_orders_sort_order_alone_reverses_default_order(client, seeded):
    response = await client.get(
        "/api/v1/order/all-orders",
        params={"sortOrder": "asc", "limit": 12},
        headers=bearer("admin", ["user", "admin"]),
    )

    assert response.status_code == 200
    assert [order["id"] for order in response.json()["data"]] == [
        str(order_id) for order_id in seeded.order_ids
    ]
