from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

from erp_files.models import Client

from conftest import CHAIRMAN, GMD, USER_A, USER_B, add_client, add_file


def test_requests_without_token_are_rejected(client):
    r = client.get("/api/clients")
    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    assert r.json() == {"success": False, "message": "Not authenticated"}

    r = client.get("/api/clients", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == status.HTTP_401_UNAUTHORIZED
    assert r.json()["message"] == "Invalid token"


def test_create_then_fetch_returns_same_fields_and_zero_files(client):
    r = client.post("/api/clients", json={"name": "Acme", "code": "AC1"}, headers=USER_A)
    assert r.status_code == status.HTTP_201_CREATED
    body = r.json()
    assert body["success"] is True
    created = body["data"]
    assert created["id"] == 1
    assert (created["name"], created["code"]) == ("Acme", "AC1")

    r = client.get("/api/clients/1", headers=USER_A)
    assert r.status_code == status.HTTP_200_OK
    fetched = r.json()["data"]
    assert (fetched["id"], fetched["name"], fetched["code"]) == (1, "Acme", "AC1")
    assert fetched["file_count"] == 0


def test_create_requires_name_and_code(client, db_session):
    r = client.post("/api/clients", json={"name": "Acme"}, headers=USER_A)
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json() == {"success": False, "message": "Name and code are required"}

    r = client.post("/api/clients", json={"name": "   ", "code": "AC1"}, headers=USER_A)
    assert r.status_code == status.HTTP_400_BAD_REQUEST

    r = client.post("/api/clients", headers=USER_A)
    assert r.status_code == status.HTTP_400_BAD_REQUEST

    assert db_session.query(Client).count() == 0


def test_get_client_not_found(client):
    r = client.get("/api/clients/999", headers=GMD)
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.json() == {"success": False, "message": "Client not found"}


def test_get_client_is_not_scoped_by_role(client, db_session):
    c = add_client(db_session)
    add_file(db_session, c.id, uploaded_by=10)
    add_file(db_session, c.id, uploaded_by=10)

    # User B owns nothing here, yet lookup by id still works and counts every file.
    r = client.get(f"/api/clients/{c.id}", headers=USER_B)
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["data"]["file_count"] == 2


def test_update_overwrites_name_and_code(client, db_session):
    c = add_client(db_session)
    r = client.put(f"/api/clients/{c.id}", json={"name": "Acme Ltd", "code": "AC2"}, headers=USER_A)
    assert r.status_code == status.HTTP_200_OK
    body = r.json()
    assert body["message"] == "Client updated successfully"
    assert (body["data"]["name"], body["data"]["code"]) == ("Acme Ltd", "AC2")

    db_session.expire_all()
    stored = db_session.get(Client, c.id)
    assert (stored.name, stored.code) == ("Acme Ltd", "AC2")


def test_update_validation_and_missing_client(client, db_session):
    c = add_client(db_session)
    r = client.put(f"/api/clients/{c.id}", json={"name": "Only name"}, headers=USER_A)
    assert r.status_code == status.HTTP_400_BAD_REQUEST

    r = client.put("/api/clients/999", json={"name": "X", "code": "Y"}, headers=USER_A)
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.json()["message"] == "Client not found"


def test_delete_client_without_files(client, db_session):
    cid = add_client(db_session).id
    r = client.delete(f"/api/clients/{cid}", headers=USER_A)
    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"success": True, "message": "Client deleted successfully"}

    db_session.expire_all()
    assert db_session.get(Client, cid) is None

    r = client.delete(f"/api/clients/{cid}", headers=USER_A)
    assert r.status_code == status.HTTP_404_NOT_FOUND


def test_delete_client_evicts_loaded_instance(client, db_session):
    c = add_client(db_session)
    r = client.delete(f"/api/clients/{c.id}", headers=USER_A)
    assert r.status_code == status.HTTP_200_OK

    assert c not in db_session
    db_session.expire_all()
    assert db_session.query(Client).count() == 0


def test_non_integer_client_id_is_not_found(client):
    expected = {"success": False, "message": "Client not found"}

    r = client.get("/api/clients/abc", headers=USER_A)
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.json() == expected

    r = client.put("/api/clients/abc", json={"name": "Acme", "code": "AC1"}, headers=USER_A)
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.json() == expected

    r = client.delete("/api/clients/abc", headers=USER_A)
    assert r.status_code == status.HTTP_404_NOT_FOUND
    assert r.json() == expected


def test_delete_client_with_files_is_refused(client, db_session):
    c = add_client(db_session)
    add_file(db_session, c.id, uploaded_by=10)

    r = client.delete(f"/api/clients/{c.id}", headers=GMD)
    assert r.status_code == status.HTTP_400_BAD_REQUEST
    assert r.json() == {"success": False, "message": "Cannot delete client with existing files"}

    db_session.expire_all()
    assert db_session.get(Client, c.id) is not None


def test_list_clients_privileged_roles_see_everything(client, db_session):
    empty = add_client(db_session, "Empty", "E1")
    mine = add_client(db_session, "Mine", "M1")
    theirs = add_client(db_session, "Theirs", "T1")
    add_file(db_session, mine.id, uploaded_by=10)
    add_file(db_session, theirs.id, uploaded_by=11)
    add_file(db_session, theirs.id, uploaded_by=11)

    for headers in (GMD, CHAIRMAN):
        r = client.get("/api/clients", headers=headers)
        assert r.status_code == status.HTTP_200_OK
        counts = {c["id"]: c["file_count"] for c in r.json()["data"]}
        assert counts == {empty.id: 0, mine.id: 1, theirs.id: 2}


def test_list_clients_non_privileged_sees_empty_and_own(client, db_session):
    empty = add_client(db_session, "Empty", "E1")
    mine = add_client(db_session, "Mine", "M1")
    theirs = add_client(db_session, "Theirs", "T1")
    shared = add_client(db_session, "Shared", "S1")
    add_file(db_session, mine.id, uploaded_by=10)
    add_file(db_session, theirs.id, uploaded_by=11)
    add_file(db_session, shared.id, uploaded_by=10)
    add_file(db_session, shared.id, uploaded_by=11)
    add_file(db_session, shared.id, uploaded_by=11)

    r = client.get("/api/clients", headers=USER_A)
    assert r.status_code == status.HTTP_200_OK
    counts = {c["id"]: c["file_count"] for c in r.json()["data"]}
    # Counts only cover the caller's own files.
    assert counts == {empty.id: 0, mine.id: 1, shared.id: 1}

    r = client.get("/api/clients", headers=USER_B)
    counts = {c["id"]: c["file_count"] for c in r.json()["data"]}
    assert counts == {empty.id: 0, theirs.id: 1, shared.id: 2}


def test_backend_failure_returns_generic_message(client, db_session, monkeypatch):
    def broken_commit():
        raise SQLAlchemyError("disk I/O error on clients table")

    monkeypatch.setattr(db_session, "commit", broken_commit)
    r = client.post("/api/clients", json={"name": "Acme", "code": "AC1"}, headers=USER_A)
    assert r.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert r.json() == {"success": False, "message": "Failed to create client"}
    assert "disk I/O" not in r.text
