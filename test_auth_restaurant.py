# test_auth_restaurant.py


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def _staff_headers(client, base_url, owner_headers, role_name, email):
    jprint("POST /admin/seed-roles", client.post(f"{base_url}/admin/seed-roles", headers=owner_headers))
    roles = jprint("GET /admin/roles", client.get(f"{base_url}/admin/roles", headers=owner_headers))
    role_id = next(r["id"] for r in roles if r["name"] == role_name)
    jprint("POST /admin/staff", client.post(f"{base_url}/admin/staff", headers=owner_headers, json={
        "email": email, "password": "staffpass", "name": f"{role_name} One", "roleId": role_id,
    }))
    r = client.post(f"{base_url}/auth/login", params={"email": email, "password": "staffpass"})
    tok = jprint("POST /auth/login (staff)", r)["access_token"]
    return {"Authorization": f"Bearer {tok}"}


def test_healthz_and_request_id(client, base_url):
    r = client.get(f"{base_url}/healthz", headers={"X-Request-ID": "abc-123"})
    assert jprint("GET /healthz", r) == {"ok": True}
    assert r.headers["X-Request-ID"] == "abc-123"
    assert client.get(f"{base_url}/healthz").headers["X-Request-ID"]


def test_signup_login_me(client, base_url, auth_headers, rng_suffix):
    me = jprint("GET /auth/me", client.get(f"{base_url}/auth/me", headers=auth_headers))
    assert me["email"] == f"owner-{rng_suffix}@example.com"
    assert me["is_staff"] is False
    assert me["is_admin"] is True
    assert me["owner_id"] == me["id"]

    # duplicate email
    r = client.post(f"{base_url}/auth/signup", json={
        "email": f"owner-{rng_suffix}@example.com", "password": "secret123", "ownerName": "Dup",
    })
    assert r.status_code == 400
    assert r.json()["error"] == "User with this email already exists"

    r = client.post(f"{base_url}/auth/login", params={"email": f"owner-{rng_suffix}@example.com", "password": "wrong"})
    assert r.status_code == 401


def test_unauthenticated_requests_get_401_error_body(client, base_url):
    for path in ("/orders", "/tables", "/categories", "/payments", "/sessions"):
        r = client.get(f"{base_url}{path}")
        assert r.status_code == 401, path
        assert r.json()["error"] == "Unauthorized"

    r = client.get(f"{base_url}/orders", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized", "detail": "Unauthorized"}


def test_validation_errors_are_400_with_error_key(client, base_url, auth_headers):
    r = client.post(f"{base_url}/categories", headers=auth_headers, json={})
    assert r.status_code == 400
    body = r.json()
    assert "name" in body["error"]
    assert body["errors"]

    r = client.post(f"{base_url}/auth/signup", json={"email": "not-an-email", "password": "x", "ownerName": ""})
    assert r.status_code == 400


def test_restaurant_configure_once_then_partial_update(client, base_url):
    r = client.post(f"{base_url}/auth/signup", json={
        "email": "fresh@example.com", "password": "secret123", "ownerName": "Fresh",
    })
    jprint("POST /auth/signup", r)
    tok = jprint("POST /auth/login", client.post(f"{base_url}/auth/login",
                 params={"email": "fresh@example.com", "password": "secret123"}))["access_token"]
    h = {"Authorization": f"Bearer {tok}"}

    assert jprint("GET /restaurant", client.get(f"{base_url}/restaurant", headers=h))["restaurant_name"] is None

    r = client.post(f"{base_url}/restaurant", headers=h, json={
        "restaurantName": "Cafe Uno", "restaurantAddress": "2 Side St", "restaurantPhone": "555-0199",
    })
    assert r.status_code == 201
    r = client.post(f"{base_url}/restaurant", headers=h, json={"restaurantName": "Again"})
    assert r.status_code == 409
    assert r.json()["error"] == "Restaurant already configured"

    # omitted fields stay, explicit null clears
    r = client.put(f"{base_url}/restaurant", headers=h, json={"restaurantPhone": None})
    out = jprint("PUT /restaurant", r)
    assert out["restaurant_phone"] is None
    assert out["restaurant_address"] == "2 Side St"
    assert out["restaurant_name"] == "Cafe Uno"

    r = client.put(f"{base_url}/restaurant", headers=h, json={"restaurantName": None})
    assert r.status_code == 400


def test_staff_act_on_owner_data_and_admin_gate(client, base_url, auth_headers):
    waiter = _staff_headers(client, base_url, auth_headers, "Waiter", "waiter@example.com")
    manager = _staff_headers(client, base_url, auth_headers, "Admin", "manager@example.com")

    # owner creates a table, staff see it
    jprint("POST /tables", client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "9"}))
    tables = jprint("GET /tables (waiter)", client.get(f"{base_url}/tables", headers=waiter))
    assert [t["number"] for t in tables] == ["9"]

    me = jprint("GET /auth/me (waiter)", client.get(f"{base_url}/auth/me", headers=waiter))
    assert me["is_staff"] is True and me["is_admin"] is False
    assert me["role"] == "Waiter"

    # non-admin staff cannot reach admin endpoints
    r = client.get(f"{base_url}/admin/staff", headers=waiter)
    assert r.status_code == 403
    r = client.post(f"{base_url}/tables", headers=waiter, json={"number": "10"})
    assert r.status_code == 403

    # admin-role staff can
    staff = jprint("GET /admin/staff (manager)", client.get(f"{base_url}/admin/staff", headers=manager))
    assert {s["email"] for s in staff} == {"waiter@example.com", "manager@example.com"}


def test_staff_update_delete_and_isolation(client, base_url, auth_headers, other_headers):
    jprint("POST /admin/seed-roles", client.post(f"{base_url}/admin/seed-roles", headers=auth_headers))
    # seeding twice creates nothing new
    again = jprint("POST /admin/seed-roles", client.post(f"{base_url}/admin/seed-roles", headers=auth_headers))
    assert again["created"] == []
    roles = {r["name"]: r["id"] for r in again["roles"]}
    assert set(roles) == {"Admin", "Waiter", "Kitchen", "Cafe", "WaterStation", "Cashier"}

    staff = jprint("POST /admin/staff", client.post(f"{base_url}/admin/staff", headers=auth_headers, json={
        "email": "cook@example.com", "password": "cookpass", "name": "Cook", "roleId": roles["Kitchen"],
    }))
    r = client.post(f"{base_url}/admin/staff", headers=auth_headers, json={
        "email": "cook@example.com", "password": "cookpass", "name": "Cook 2", "roleId": roles["Kitchen"],
    })
    assert r.status_code == 400

    # another owner cannot see or touch this staff member
    assert client.put(f"{base_url}/admin/staff/{staff['id']}", headers=other_headers, json={"name": "X"}).status_code == 404
    assert client.delete(f"{base_url}/admin/staff/{staff['id']}", headers=other_headers).status_code == 404

    out = jprint("PUT /admin/staff", client.put(f"{base_url}/admin/staff/{staff['id']}", headers=auth_headers,
                                                json={"roleId": roles["Cafe"]}))
    assert out["role"]["name"] == "Cafe"
    assert out["name"] == "Cook"

    jprint("DELETE /admin/staff", client.delete(f"{base_url}/admin/staff/{staff['id']}", headers=auth_headers))
    r = client.post(f"{base_url}/auth/login", params={"email": "cook@example.com", "password": "cookpass"})
    assert r.status_code == 401
