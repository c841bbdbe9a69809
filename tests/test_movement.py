import pytest
from conftest import yappy_headers
from sqlalchemy.exc import OperationalError

from yappy_demo.routers import movement as movement_routes


def _history(client, session=None, **pagination):
    page = {"start_date": "2024-03-01", "end_date": "2024-03-31", "limit": 10}
    page.update(pagination)
    return client.post(
        "/api/v1/movement/history",
        json={"body": {"pagination": page}},
        headers=yappy_headers(session),
    )


@pytest.fixture
def march_payments(create_payment):
    return [
        create_payment(created_at="2024-03-05T10:00:00Z", amount=1.0, description="uno"),
        create_payment(created_at="2024-03-10T10:00:00Z", amount=2.0, description="dos"),
        create_payment(created_at="2024-03-31T22:00:00Z", amount=3.0, description="tres"),
        create_payment(created_at="2024-04-02T10:00:00Z", amount=4.0, description="abril"),
    ]


def test_history_window_newest_first(client, session_token, march_payments):
    resp = _history(client, session_token)
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"]["code"] == "YP-0000"

    txns = data["body"]["transactions"]
    assert [t["description"] for t in txns] == ["tres", "dos", "uno"]
    assert data["body"]["pagination"]["has_next_page"] is False
    assert data["body"]["pagination"]["limit"] == 10
    assert data["body"]["pagination"]["token"]

    first = txns[0]
    assert first["type"] == "TXN-CHECKOUT"
    assert first["role"] == "CREDIT"
    assert first["category"] == "INTERBANK"
    assert first["charge"] == {"amount": 3.0, "partial_amount": 3.0, "tip": 0, "tax": 0, "currency": "USD"}
    assert first["fee"] == {"amount": 0, "currency": "USD"}
    assert first["status"] == "PENDING"
    assert first["debitor"]["bank_name"] == "Banco General"
    assert first["creditor"]["alias"] == "merchant-yappy"


def test_history_pages_with_token(client, march_payments):
    first = _history(client, limit=2).json()
    assert [t["description"] for t in first["body"]["transactions"]] == ["tres", "dos"]
    assert first["body"]["pagination"]["has_next_page"] is True

    token = first["body"]["pagination"]["token"]
    second = _history(client, limit=2, token=token).json()
    assert [t["description"] for t in second["body"]["transactions"]] == ["uno"]
    assert second["body"]["pagination"]["has_next_page"] is False


def test_history_bad_page_token(client):
    resp = _history(client, token="not-a-token")
    assert resp.status_code == 400
    assert resp.json()["status"]["code"] == "YP-0010"


def test_history_empty(client):
    resp = _history(client)
    assert resp.status_code == 200
    assert resp.json() == {
        "status": {
            "code": "YP-0001",
            "description": "Se ha realizado la ejecución del servicio correctamente, pero no se encontraron datos relacionados con la búsqueda",
        }
    }


@pytest.mark.parametrize("limit", [0, 101])
def test_history_limit_out_of_range(client, limit):
    resp = _history(client, limit=limit)
    assert resp.status_code == 400
    assert resp.json()["status"]["code"] == "YP-0040"


def test_history_missing_pagination(client):
    resp = client.post("/api/v1/movement/history", json={"body": {}}, headers=yappy_headers())
    assert resp.status_code == 400
    assert resp.json()["status"]["code"] == "YP-0010"


def test_history_bad_dates(client):
    resp = _history(client, start_date="yesterday")
    assert resp.status_code == 400
    assert resp.json()["status"]["code"] == "YP-0010"


def test_history_too_many_aliases(client):
    aliases = "|".join(f"alias{i}" for i in range(26))
    resp = client.post(
        "/api/v1/movement/history",
        json={"body": {
            "pagination": {"start_date": "2024-03-01", "end_date": "2024-03-31", "limit": 10},
            "filter": [{"id": "COLLECTION_ALIAS", "value": aliases}],
        }},
        headers=yappy_headers(),
    )
    assert resp.status_code == 400
    assert resp.json()["status"]["code"] == "YP-0039"


def test_history_role_filter(client, march_payments):
    def with_role(role):
        return client.post(
            "/api/v1/movement/history",
            json={"body": {
                "pagination": {"start_date": "2024-03-01", "end_date": "2024-03-31", "limit": 10},
                "filter": [{"id": "ROLE", "value": role}],
            }},
            headers=yappy_headers(),
        ).json()

    assert with_role("DEBIT")["status"]["code"] == "YP-0001"
    assert len(with_role("CREDIT")["body"]["transactions"]) == 3


def test_history_invalid_session(client):
    resp = client.post(
        "/api/v1/movement/history",
        json={"body": {"pagination": {"start_date": "2024-03-01", "end_date": "2024-03-31", "limit": 10}}},
        headers=yappy_headers("eyJlbmMi.x.y"),
    )
    assert resp.status_code == 401
    assert resp.json()["status"]["code"] == "YP-0011"


def test_movement_detail(client, session_token, create_payment):
    payment = create_payment(amount=12.5, description="detalle", metadata=[{"id": "order", "value": "42"}])
    resp = client.get(f"/api/v1/movement/{payment['uuid']}", headers=yappy_headers(session_token))
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"]["code"] == "YP-0000"
    assert data["body"]["id"] == payment["uuid"]
    assert data["body"]["charge"]["amount"] == 12.5
    assert data["body"]["metadata"] == [{"id": "order", "value": "42"}]
    assert data["body"]["cut_off_date"]


def test_movement_detail_not_found(client):
    resp = client.get("/api/v1/movement/does-not-exist", headers=yappy_headers())
    assert resp.status_code == 200
    assert resp.json()["status"]["code"] == "YP-0001"


def test_history_pages_through_equal_timestamps(client, create_payment):
    for name in ("a", "b", "c"):
        create_payment(created_at="2024-03-05T10:00:00Z", description=name)

    first = _history(client, limit=2).json()
    assert [t["description"] for t in first["body"]["transactions"]] == ["c", "b"]
    assert first["body"]["pagination"]["has_next_page"] is True

    second = _history(client, limit=2, token=first["body"]["pagination"]["token"]).json()
    assert second["status"]["code"] == "YP-0000"
    assert [t["description"] for t in second["body"]["transactions"]] == ["a"]


def test_history_registration_date_is_utc(client, create_payment):
    create_payment(created_at="2024-03-05T05:00:00-05:00")
    txn = _history(client).json()["body"]["transactions"][0]
    assert txn["registration_date"] == "2024-03-05T10:00:00+00:00"


def test_history_database_down(client, monkeypatch):
    async def _broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, ConnectionError("database is down"))

    monkeypatch.setattr(movement_routes, "query_history", _broken)
    resp = _history(client)
    assert resp.status_code == 500
    assert resp.json()["status"]["code"] == "YP-9999"
