# test_tables.py


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def test_table_crud_reorder_and_position(client, base_url, auth_headers):
    t1 = jprint("POST /tables", client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "1", "capacity": 2}))
    t2 = jprint("POST /tables", client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "2", "name": "Patio"}))
    assert t2["sort_order"] == t1["sort_order"] + 1
    assert t2["capacity"] == 4 and t2["qr_code_active"] is True

    r = client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "1"})
    assert r.status_code == 400
    r = client.put(f"{base_url}/tables/{t2['id']}", headers=auth_headers, json={"number": "1"})
    assert r.status_code == 400
    r = client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "3", "capacity": 0})
    assert r.status_code == 400

    out = jprint("PUT /tables", client.put(f"{base_url}/tables/{t2['id']}", headers=auth_headers, json={"capacity": 6}))
    assert out["capacity"] == 6 and out["name"] == "Patio"

    jprint("PUT /tables/reorder", client.put(f"{base_url}/tables/reorder", headers=auth_headers, json={
        "tables": [{"id": t1["id"], "sortOrder": 5}, {"id": t2["id"], "sortOrder": 1}],
    }))
    listed = jprint("GET /tables", client.get(f"{base_url}/tables", headers=auth_headers))
    assert [t["number"] for t in listed] == ["2", "1"]

    pos = jprint("PUT position", client.put(f"{base_url}/tables/{t1['id']}/position", headers=auth_headers,
                                            json={"gridX": 3, "gridY": 7, "gridWidth": 4}))
    assert (pos["grid_x"], pos["grid_y"], pos["grid_width"], pos["grid_height"]) == (3, 7, 4, 2)

    jprint("DELETE /tables", client.delete(f"{base_url}/tables/{t1['id']}", headers=auth_headers))
    assert client.get(f"{base_url}/tables/{t1['id']}", headers=auth_headers).status_code == 404


def test_inactive_tables_hidden_unless_requested(client, base_url, auth_headers, table):
    jprint("PUT", client.put(f"{base_url}/tables/{table['id']}", headers=auth_headers, json={"isActive": False}))
    assert jprint("GET", client.get(f"{base_url}/tables", headers=auth_headers)) == []
    listed = jprint("GET", client.get(f"{base_url}/tables", headers=auth_headers, params={"include_inactive": True}))
    assert [t["id"] for t in listed] == [table["id"]]


def test_table_shows_active_sessions_with_origin(client, base_url, auth_headers, table, seated):
    listed = jprint("GET /tables", client.get(f"{base_url}/tables", headers=auth_headers))
    row = listed[0]
    assert row["occupied"] is True
    assert [(s["id"], s["origin"]) for s in row["active_sessions"]] == [(seated["id"], "STAFF")]

    jprint("PUT /sessions (complete)", client.put(f"{base_url}/sessions/{seated['id']}", headers=auth_headers,
                                                  json={"status": "COMPLETED"}))
    row = jprint("GET /tables/{id}", client.get(f"{base_url}/tables/{table['id']}", headers=auth_headers))
    assert row["occupied"] is False and row["active_sessions"] == []


def test_table_delete_guards(client, base_url, auth_headers, table, menu):
    s = jprint("POST /sessions", client.post(f"{base_url}/sessions", headers=auth_headers,
                                             json={"customerName": "Bo", "tableId": table["id"]}))
    r = client.delete(f"{base_url}/tables/{table['id']}", headers=auth_headers)
    assert r.status_code == 400

    # a closed session no longer blocks and loses its table link
    jprint("PUT /sessions", client.put(f"{base_url}/sessions/{s['id']}", headers=auth_headers, json={"status": "COMPLETED"}))
    jprint("DELETE /tables", client.delete(f"{base_url}/tables/{table['id']}", headers=auth_headers))
    detail = jprint("GET /sessions/{id}", client.get(f"{base_url}/sessions/{s['id']}", headers=auth_headers))
    assert detail["table_id"] is None

    # orders referencing a table block its deletion
    t2 = jprint("POST /tables", client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "T2"}))
    jprint("POST /orders", client.post(f"{base_url}/orders", headers=auth_headers, json={
        "tableId": t2["id"], "items": [{"menuItemId": menu["soda_id"], "quantity": 1, "price": 20.0}],
    }))
    r = client.delete(f"{base_url}/tables/{t2['id']}", headers=auth_headers)
    assert r.status_code == 400


def test_table_qr_code(client, base_url, auth_headers, table):
    out = jprint("GET /tables/{id}/qr", client.get(f"{base_url}/tables/{table['id']}/qr", headers=auth_headers))
    assert out["qr_code"].startswith("data:image/png;base64,")
    assert table["id"] in out["url"]

    opened = jprint("POST qr-session", client.post(f"{base_url}/tables/{table['id']}/qr-session", headers=auth_headers))
    assert opened["session"]["origin"] == "QR"
    assert opened["session"]["status"] == "SEATED"
    assert opened["session"]["session_token"] in opened["url"]


def test_public_qr_session_and_menu(client, base_url, auth_headers, table, menu):
    r = client.post(f"{base_url}/qr/session", json={"tableId": table["id"], "customerName": "Kim", "guestCount": 3})
    assert r.status_code == 201, r.text
    s = r.json()
    assert s["status"] == "SEATED"
    assert s["guest_count"] == 3
    assert s["restaurant_name"] == "Bistro A"
    token = s["session_token"]

    got = jprint("GET /qr/session", client.get(f"{base_url}/qr/session", params={"token": token}))
    assert got["session_id"] == s["session_id"]
    assert client.get(f"{base_url}/qr/session", params={"token": "nope"}).status_code == 404

    # unavailable items are hidden from customers
    jprint("PUT", client.put(f"{base_url}/menu-items/{menu['soda_id']}", headers=auth_headers, json={"isAvailable": False}))
    qm = jprint("GET /qr/menu", client.get(f"{base_url}/qr/menu", params={"token": token}))
    names = [i["name"] for c in qm["categories"] for i in c["items"]]
    assert names == ["Burger"]

    # the session shows up for the restaurant
    sessions = jprint("GET /admin/qr-sessions", client.get(f"{base_url}/admin/qr-sessions", headers=auth_headers))
    assert [x["id"] for x in sessions] == [s["session_id"]]
    assert sessions[0]["table_number"] == "T1"


def test_public_qr_session_refused_for_disabled_or_inactive_table(client, base_url, auth_headers, table):
    jprint("PUT", client.put(f"{base_url}/tables/{table['id']}", headers=auth_headers, json={"qrCodeActive": False}))
    r = client.post(f"{base_url}/qr/session", json={"tableId": table["id"]})
    assert r.status_code == 403

    jprint("PUT", client.put(f"{base_url}/tables/{table['id']}", headers=auth_headers,
                             json={"qrCodeActive": True, "isActive": False}))
    r = client.post(f"{base_url}/qr/session", json={"tableId": table["id"]})
    assert r.status_code == 404
    r = client.post(f"{base_url}/qr/session", json={"tableId": "does-not-exist"})
    assert r.status_code == 404


def test_qr_order_is_priced_by_the_server(client, base_url, auth_headers, table, menu):
    token = jprint("POST /qr/session", client.post(f"{base_url}/qr/session", json={"tableId": table["id"]}))["session_token"]

    r = client.post(f"{base_url}/qr/orders", json={
        "sessionToken": token,
        "items": [{"menuItemId": menu["burger_id"], "quantity": 1, "price": 1.0}],
    })
    assert r.status_code == 400

    order = jprint("POST /qr/orders", client.post(f"{base_url}/qr/orders", json={
        "sessionToken": token,
        "customerName": "Kim",
        "items": [
            {"menuItemId": menu["burger_id"], "quantity": 2,
             "selections": {menu["size_id"]: [menu["large_id"]]}},
            {"menuItemId": menu["soda_id"], "quantity": 1, "price": 20.0},
        ],
    }))
    assert order["status"] == "PENDING"
    assert order["order_number"].startswith("ORD-")
    assert order["total_amount"] == 260.0
    assert {i["menu_item_name"]: i["price"] for i in order["items"]} == {"Burger": 120.0, "Soda": 20.0}
    assert order["session_id"] and order["table_id"] == table["id"]

    listed = jprint("GET /qr/orders", client.get(f"{base_url}/qr/orders", params={"token": token}))
    assert [o["id"] for o in listed] == [order["id"]]

    # the restaurant sees it too
    staff_view = jprint("GET /orders/{id}", client.get(f"{base_url}/orders/{order['id']}", headers=auth_headers))
    assert staff_view["total_amount"] == 260.0


def test_qr_order_rejects_unavailable_items_and_ended_sessions(client, base_url, auth_headers, table, menu):
    s = jprint("POST /qr/session", client.post(f"{base_url}/qr/session", json={"tableId": table["id"]}))
    token = s["session_token"]
    jprint("PUT", client.put(f"{base_url}/menu-items/{menu['soda_id']}", headers=auth_headers, json={"isAvailable": False}))
    r = client.post(f"{base_url}/qr/orders", json={"sessionToken": token, "items": [{"menuItemId": menu["soda_id"], "quantity": 1}]})
    assert r.status_code == 400
    r = client.post(f"{base_url}/qr/orders", json={"sessionToken": token, "items": []})
    assert r.status_code == 400

    jprint("end", client.post(f"{base_url}/admin/qr-sessions/{s['session_id']}/end", headers=auth_headers))
    r = client.post(f"{base_url}/qr/orders", json={"sessionToken": token, "items": [{"menuItemId": menu["burger_id"], "quantity": 1}]})
    assert r.status_code == 404
    r = client.post(f"{base_url}/admin/qr-sessions/{s['session_id']}/end", headers=auth_headers)
    assert r.status_code == 400


def test_seating_checks_both_session_origins(client, base_url, auth_headers, table):
    jprint("POST /qr/session", client.post(f"{base_url}/qr/session", json={"tableId": table["id"]}))

    r = client.post(f"{base_url}/sessions", headers=auth_headers, json={"customerName": "Lee", "tableId": table["id"]})
    assert r.status_code == 400
    assert "QR" in r.json()["error"]

    waiting = jprint("POST /sessions", client.post(f"{base_url}/sessions", headers=auth_headers, json={"customerName": "Lee"}))
    assert waiting["status"] == "WAITING"
    r = client.put(f"{base_url}/sessions/{waiting['id']}/seat", headers=auth_headers, json={"tableId": table["id"]})
    assert r.status_code == 400

    t2 = jprint("POST /tables", client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "T2"}))
    out = jprint("PUT seat", client.put(f"{base_url}/sessions/{waiting['id']}/seat", headers=auth_headers,
                                        json={"tableId": t2["id"]}))
    assert out["status"] == "SEATED" and out["table_id"] == t2["id"] and out["seated_time"]


def test_move_session_to_another_table(client, base_url, auth_headers, table, seated, menu):
    order = jprint("POST /orders", client.post(f"{base_url}/orders", headers=auth_headers, json={
        "sessionId": seated["id"], "items": [{"menuItemId": menu["soda_id"], "quantity": 2, "price": 20.0}],
    }))
    assert order["table_id"] == table["id"]

    t2 = jprint("POST /tables", client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "T2"}))
    r = client.post(f"{base_url}/admin/tables/move", headers=auth_headers,
                    json={"sessionId": seated["id"], "targetTableId": table["id"]})
    assert r.status_code == 400

    out = jprint("POST move", client.post(f"{base_url}/admin/tables/move", headers=auth_headers,
                                          json={"sessionId": seated["id"], "targetTableId": t2["id"]}))
    assert out["session"]["table_id"] == t2["id"]
    assert out["orders_moved"] == 1
    moved = jprint("GET /orders/{id}", client.get(f"{base_url}/orders/{order['id']}", headers=auth_headers))
    assert moved["table_id"] == t2["id"]

    # T1 is free again, T2 is now taken
    assert jprint("GET", client.get(f"{base_url}/tables/{table['id']}", headers=auth_headers))["occupied"] is False
    other = jprint("POST /sessions", client.post(f"{base_url}/sessions", headers=auth_headers, json={"customerName": "Z"}))
    r = client.post(f"{base_url}/admin/tables/move", headers=auth_headers,
                    json={"sessionId": other["id"], "targetTableId": t2["id"]})
    assert r.status_code == 400


def test_merge_tables_folds_source_session_into_target(client, base_url, auth_headers, table, seated, menu):
    order = jprint("POST /orders", client.post(f"{base_url}/orders", headers=auth_headers, json={
        "sessionId": seated["id"], "items": [{"menuItemId": menu["soda_id"], "quantity": 2}],
    }))
    t2 = jprint("POST /tables", client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "T2"}))
    merge_url = f"{base_url}/admin/tables/merge"

    # T2 has nobody seated yet
    r = client.post(merge_url, headers=auth_headers, json={"sourceTableId": table["id"], "targetTableId": t2["id"]})
    assert r.status_code == 404
    r = client.post(merge_url, headers=auth_headers, json={"sourceTableId": table["id"], "targetTableId": table["id"]})
    assert r.status_code == 400

    opened = jprint("POST qr-session", client.post(f"{base_url}/tables/{t2['id']}/qr-session", headers=auth_headers))
    target_id = opened["session"]["id"]
    out = jprint("POST merge", client.post(merge_url, headers=auth_headers,
                                           json={"sourceTableId": table["id"], "targetTableId": t2["id"]}))
    assert out["orders_moved"] == 1
    assert out["merged_session_id"] == seated["id"]
    assert out["session"]["id"] == target_id
    assert out["session"]["status"] == "ORDERED"

    moved = jprint("GET /orders/{id}", client.get(f"{base_url}/orders/{order['id']}", headers=auth_headers))
    assert moved["session_id"] == target_id and moved["table_id"] == t2["id"]
    source = jprint("GET /sessions/{id}", client.get(f"{base_url}/sessions/{seated['id']}", headers=auth_headers))
    assert source["status"] == "COMPLETED" and source["is_active"] is False
    assert source["merged_into_id"] == target_id
    assert source["check_out_time"] and source["orders"] == []
    target = jprint("GET /sessions/{id}", client.get(f"{base_url}/sessions/{target_id}", headers=auth_headers))
    assert target["total_amount"] == 40.0
    assert jprint("GET", client.get(f"{base_url}/tables/{table['id']}", headers=auth_headers))["occupied"] is False

    # T1 is empty now
    r = client.post(merge_url, headers=auth_headers, json={"sourceTableId": table["id"], "targetTableId": t2["id"]})
    assert r.status_code == 404

    # a party that already split its bill stays where it is
    again = jprint("POST /sessions", client.post(f"{base_url}/sessions", headers=auth_headers,
                                                 json={"customerName": "Bo", "tableId": table["id"]}))
    jprint("POST /orders", client.post(f"{base_url}/orders", headers=auth_headers, json={
        "sessionId": again["id"], "items": [{"menuItemId": menu["soda_id"], "quantity": 1}],
    }))
    jprint("POST /bill-splits", client.post(f"{base_url}/bill-splits", headers=auth_headers, json={
        "sessionId": again["id"], "splitType": "equal_split", "splits": [{"amount": 10}, {"amount": 10}],
    }))
    r = client.post(merge_url, headers=auth_headers, json={"sourceTableId": table["id"], "targetTableId": t2["id"]})
    assert r.status_code == 400
    assert jprint("GET", client.get(f"{base_url}/sessions/{again['id']}", headers=auth_headers))["is_active"] is True


def test_merge_tables_stays_within_restaurant(client, base_url, auth_headers, other_headers, table, seated):
    t2 = jprint("POST /tables", client.post(f"{base_url}/tables", headers=auth_headers, json={"number": "T2"}))
    r = client.post(f"{base_url}/admin/tables/merge", headers=other_headers,
                    json={"sourceTableId": table["id"], "targetTableId": t2["id"]})
    assert r.status_code == 404
    r = client.post(f"{base_url}/admin/tables/merge", headers=auth_headers, json={"sourceTableId": table["id"]})
    assert r.status_code == 400


def test_tables_tenant_isolation(client, base_url, auth_headers, other_headers, table, seated):
    assert client.get(f"{base_url}/tables/{table['id']}", headers=other_headers).status_code == 404
    assert client.put(f"{base_url}/tables/{table['id']}", headers=other_headers, json={"name": "Mine"}).status_code == 404
    assert client.delete(f"{base_url}/tables/{table['id']}", headers=other_headers).status_code == 404
    assert client.get(f"{base_url}/tables/{table['id']}/qr", headers=other_headers).status_code == 404
    assert client.get(f"{base_url}/sessions/{seated['id']}", headers=other_headers).status_code == 404
    assert jprint("GET /tables (B)", client.get(f"{base_url}/tables", headers=other_headers)) == []

    # owner B cannot seat onto A's table, and number "T1" is free for B
    r = client.post(f"{base_url}/sessions", headers=other_headers, json={"tableId": table["id"]})
    assert r.status_code == 404
    jprint("POST /tables (B)", client.post(f"{base_url}/tables", headers=other_headers, json={"number": "T1"}))
