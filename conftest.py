# conftest.py
import os

# settings are read at import time
os.environ.setdefault("APP_SECRET", "test-secret-not-for-production")
os.environ["DB_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from tableside.db import Base, engine
from tableside.main import app


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def base_url():
    return ""


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def rng_suffix():
    import random, string
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))


def _owner_headers(client, email: str, restaurant: str) -> dict:
    r = client.post("/auth/signup", json={
        "email": email, "password": "secret123", "ownerName": "Owner",
        "restaurantName": restaurant, "restaurantAddress": "1 Main St", "restaurantPhone": "555-0100",
    })
    assert r.status_code == 201, f"/auth/signup failed: {r.text}"
    r = client.post("/auth/login", params={"email": email, "password": "secret123"})
    assert r.status_code == 200, f"/auth/login failed: {r.text}"
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def auth_headers(client, rng_suffix):
    return _owner_headers(client, f"owner-{rng_suffix}@example.com", "Bistro A")


@pytest.fixture
def other_headers(client, rng_suffix):
    return _owner_headers(client, f"rival-{rng_suffix}@example.com", "Bistro B")


@pytest.fixture
def menu(client, auth_headers):
    """One category, a 100.00 burger with a Size selection, and a 20.00 soda."""
    r = client.post("/categories", headers=auth_headers, json={"name": "Mains"})
    assert r.status_code == 201, r.text
    cat_id = r.json()["id"]

    r = client.post("/menu-items", headers=auth_headers, json={
        "name": "Burger", "price": 100.0, "categoryId": cat_id, "description": "Beef burger",
    })
    assert r.status_code == 201, r.text
    burger_id = r.json()["id"]

    r = client.post(f"/menu-items/{burger_id}/selections", headers=auth_headers, json={
        "name": "Size", "isRequired": False, "allowMultiple": False,
        "options": [{"name": "Regular", "priceAdd": 0}, {"name": "Large", "priceAdd": 20.0}],
    })
    assert r.status_code == 201, r.text
    size = r.json()
    large_id = next(o["id"] for o in size["options"] if o["name"] == "Large")

    r = client.post("/menu-items", headers=auth_headers, json={
        "name": "Soda", "price": 20.0, "categoryId": cat_id,
    })
    assert r.status_code == 201, r.text
    soda_id = r.json()["id"]

    return {
        "category_id": cat_id,
        "burger_id": burger_id,
        "soda_id": soda_id,
        "size_id": size["id"],
        "large_id": large_id,
    }


@pytest.fixture
def table(client, auth_headers):
    r = client.post("/tables", headers=auth_headers, json={"number": "T1", "name": "Window", "capacity": 4})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def seated(client, auth_headers, table):
    """A staff session seated at the table."""
    r = client.post("/sessions", headers=auth_headers, json={
        "customerName": "Ada", "partySize": 2, "tableId": table["id"],
    })
    assert r.status_code == 201, r.text
    return r.json()
