from datetime import timedelta

from conftest import ORG_A, ORG_B, auth_headers


def _ensure(client, org=ORG_A, name="Pharmacie Alpha"):
    res = client.post(
        "/api/pharmacies/ensure",
        json={"clerkOrgId": org, "name": name},
        headers=auth_headers(org),
    )
    assert res.status_code == 200, res.text
    return res.json()["data"]


def test_health(client):
    assert client.get("/").status_code == 200


def test_ensure_pharmacy_is_idempotent(client):
    first = _ensure(client)
    second = _ensure(client, name="Autre nom")

    assert first["id"] == second["id"]
    assert first["pharmacyNumber"] == "PHARM-01"
    assert second["name"] == "Pharmacie Alpha"

    other = _ensure(client, org=ORG_B, name="Pharmacie Beta")
    assert other["pharmacyNumber"] == "PHARM-02"


def test_mutation_without_access_is_403(client):
    res = client.post("/api/pharmacies/ensure", json={"clerkOrgId": ORG_A, "name": "x"})
    body = res.json()
    assert res.status_code == 403
    assert body["ok"] is False
    assert body["error"]["code"] == "UNAUTHORIZED"

    res = client.post(
        "/api/pharmacies/ensure",
        json={"clerkOrgId": ORG_A, "name": "x"},
        headers=auth_headers(ORG_B),
    )
    assert res.status_code == 403


def test_validation_error_envelope(client):
    res = client.post("/api/stock-lots/receive", json={"clerkOrgId": ORG_A}, headers=auth_headers())
    body = res.json()
    assert res.status_code == 422
    assert body["ok"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"


def test_reads_are_silently_empty_for_other_orgs(client):
    _ensure(client)
    headers = auth_headers(ORG_B)

    risk = client.get("/api/stock-lots/expiry-risk", params={"clerkOrgId": ORG_A}, headers=headers).json()
    assert risk["ok"] is True
    assert risk["data"]["items"] == []
    assert risk["data"]["counts"] == {
        "total": 0,
        "expired": 0,
        "dueIn30Days": 0,
        "dueIn60Days": 0,
        "dueIn90Days": 0,
    }
    assert risk["data"]["filterOptions"]["severities"] == ["EXPIRED", "CRITICAL", "WARNING", "WATCH"]

    trace = client.get(
        "/api/stock-lots/traceability",
        params={"clerkOrgId": ORG_A, "lotNumber": "LOT-1"},
        headers=headers,
    ).json()
    assert trace["data"] == {"lotNumber": "LOT-1", "items": []}

    summary = client.get("/api/alerts/low-stock/summary", params={"clerkOrgId": ORG_A}, headers=headers).json()
    assert summary == {"ok": True, "data": None, "error": None}

    lots = client.get("/api/stock-lots", params={"clerkOrgId": ORG_A}).json()
    assert lots["data"] == []


def test_stock_flow_over_http(client, db, make_product, make_supplier, today):
    from officine.models import Pharmacy

    _ensure(client)
    pharmacy = db.query(Pharmacy).filter(Pharmacy.clerk_org_id == ORG_A).one()
    product = make_product(pharmacy, "Spasfon", category="Antispasmodique", threshold=5)
    supplier = make_supplier(pharmacy, "OCP")
    db.commit()
    headers = auth_headers()

    res = client.post(
        "/api/procurement/delivery-notes",
        json={
            "clerkOrgId": ORG_A,
            "supplierId": supplier.id,
            "externalReference": "BL-42",
            "lines": [
                {
                    "productId": product.id,
                    "lotNumber": "SP-01",
                    "expiryDate": (today + timedelta(days=10)).isoformat(),
                    "quantity": 6,
                    "unitPrice": "2.00",
                }
            ],
        },
        headers=headers,
    )
    assert res.status_code == 201, res.text
    order = res.json()["data"]
    assert order["type"] == "DELIVERY_NOTE"
    assert order["items"][0]["quantity"] == 6

    risk = client.get(
        "/api/stock-lots/expiry-risk",
        params={"clerkOrgId": ORG_A, "windowDays": 30, "supplierIds": [supplier.id]},
        headers=headers,
    ).json()["data"]
    (item,) = risk["items"]
    assert item["severity"] == "CRITICAL"
    assert item["daysToExpiry"] == 10
    assert item["supplierName"] == "OCP"
    assert item["recommendedPathHref"] == "/app/ventes"
    assert risk["counts"]["dueIn30Days"] == 1

    res = client.post(
        "/api/sales",
        json={
            "clerkOrgId": ORG_A,
            "paymentMethod": "CASH",
            "lines": [{"productId": product.id, "quantity": 9, "unitPrice": "4.00"}],
        },
        headers=headers,
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "INSUFFICIENT_STOCK"
    assert res.json()["error"]["details"]["available"] == 6

    res = client.post(
        "/api/sales",
        json={
            "clerkOrgId": ORG_A,
            "lines": [{"productId": product.id, "quantity": 2, "unitPrice": "4.00"}],
        },
        headers=headers,
    )
    assert res.status_code == 201, res.text
    assert res.json()["data"]["items"][0]["lots"][0]["lotNumber"] == "SP-01"
    assert res.json()["data"]["totalAmount"] == 8.0
    assert res.json()["data"]["items"][0]["unitPrice"] == 4.0

    trace = client.get(
        "/api/stock-lots/traceability",
        params={"clerkOrgId": ORG_A, "lotNumber": "sp-01"},
        headers=headers,
    ).json()["data"]
    assert trace["lotNumber"] == "SP-01"
    (lot,) = trace["items"]
    assert (lot["receivedQuantity"], lot["soldQuantity"], lot["currentBalance"]) == (6, 2, 4)
    assert [e["eventType"] for e in lot["timeline"]] == ["RECEPTION", "SORTIE"]

    res = client.post(
        f"/api/stock-lots/{lot['lotId']}/adjust",
        json={"clerkOrgId": ORG_A, "delta": -5, "reason": "casse"},
        headers=headers,
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "NEGATIVE_STOCK"

    movements = client.get(
        "/api/stock-movements",
        params={"clerkOrgId": ORG_A, "pageSize": 1},
        headers=headers,
    ).json()["data"]
    assert movements["totalCount"] == 2
    assert len(movements["items"]) == 1
    assert movements["items"][0]["movementType"] == "SALE_STOCK_SYNC"


def test_low_stock_draft_over_http(client, db, make_product, make_supplier):
    from officine.models import Pharmacy

    _ensure(client)
    pharmacy = db.query(Pharmacy).filter(Pharmacy.clerk_org_id == ORG_A).one()
    product = make_product(pharmacy, "Vitamine C", purchase_price="1.10", threshold=2)
    supplier = make_supplier(pharmacy)
    db.commit()
    headers = auth_headers()

    summary = client.get("/api/alerts/low-stock/summary", params={"clerkOrgId": ORG_A}, headers=headers).json()["data"]
    assert summary["count"] == 1
    assert summary["signature"] == str(product.id)
    assert summary["hasActiveDraft"] is False

    res = client.post(
        "/api/alerts/low-stock/draft",
        json={"clerkOrgId": ORG_A, "supplierId": supplier.id},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    order_id = res.json()["data"]["orderId"]

    order = client.get(f"/api/procurement/orders/{order_id}", params={"clerkOrgId": ORG_A}, headers=headers).json()["data"]
    assert order["orderNumber"] == "BC-01"
    assert order["createdFromAlert"] is True
    item = order["items"][0]
    assert isinstance(item["unitPrice"], float)
    assert item["unitPrice"] == 1.1
    assert item["lineTotal"] == 0.0
    assert order["totalAmount"] == 0.0

    res = client.post(f"/api/alerts/low-stock/draft/{order_id}/sync", json={"clerkOrgId": ORG_A}, headers=headers)
    assert res.json()["data"]["orderId"] == order_id

    res = client.post("/api/alerts/low-stock/refresh", json={"clerkOrgId": ORG_A}, headers=headers)
    assert res.json()["data"]["orderId"] == order_id

    res = client.patch(
        f"/api/procurement/orders/{order_id}/status",
        json={"clerkOrgId": ORG_A, "status": "ORDERED"},
        headers=headers,
    )
    assert res.status_code == 200, res.text

    summary = client.get("/api/alerts/low-stock/summary", params={"clerkOrgId": ORG_A}, headers=headers).json()["data"]
    assert summary["hasActiveDraft"] is False
    assert summary["isHandled"] is True


def test_low_stock_draft_without_low_stock_is_409(client, db, make_supplier):
    from officine.models import Pharmacy

    _ensure(client)
    pharmacy = db.query(Pharmacy).filter(Pharmacy.clerk_org_id == ORG_A).one()
    supplier = make_supplier(pharmacy)
    db.commit()

    res = client.post(
        "/api/alerts/low-stock/draft",
        json={"clerkOrgId": ORG_A, "supplierId": supplier.id},
        headers=auth_headers(),
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "NO_LOW_STOCK"
