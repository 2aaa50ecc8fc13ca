import csv
import io
import json

from conftest import listing
from sqlalchemy.exc import SQLAlchemyError

from propertyhub.models.audit import AuditLog


def stream_events(resp) -> list[dict]:
    return [json.loads(line[len("data: ") :]) for line in resp.text.splitlines() if line.startswith("data: ")]


def test_upload_inserts_new_and_skips_existing(admin_client, collection, db):
    collection.insert_one(listing("p1"))

    resp = admin_client.post("/api/upload-properties", json={"properties": [listing("p1"), listing("p2"), listing("p3")]})

    assert resp.status_code == 200
    body = resp.json()
    assert body["insertedCount"] == 2
    assert body["duplicateCount"] == 1
    assert body["insertedIds"] == ["p2", "p3"]
    assert collection.count_documents({}) == 3
    assert collection.find_one({"id": "p2"})["createdBy"] == "admin@example.com"
    assert db.query(AuditLog).filter(AuditLog.action == "upload_insert").count() == 1


def test_upload_rejects_invalid_records(admin_client, collection):
    bad = [listing("p1", price=0), listing("p1"), {"date": "2024-01-01"}]

    resp = admin_client.post("/api/upload-properties", json={"properties": bad})

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["error"] == "Validation errors found"
    assert [entry["index"] for entry in detail["details"]] == [0, 1, 2]
    assert "Duplicate id: p1" in detail["details"][1]["errors"]
    assert collection.count_documents({}) == 0


def test_upload_when_everything_exists(admin_client, collection):
    collection.insert_one(listing("p1"))

    body = admin_client.post("/api/upload-properties", json={"properties": [listing("p1")]}).json()

    assert body["insertedCount"] == 0
    assert body["message"] == "No new properties were saved"


def test_upload_needs_at_least_one_record(admin_client):
    assert admin_client.post("/api/upload-properties", json={"properties": []}).status_code == 400


def test_replace_database_upserts(admin_client, collection, db):
    collection.insert_many([listing("p1"), listing("p2")])
    incoming = [listing("p1"), listing("p2", price=99000, beds=3), listing("p3"), {"type": "Villa"}]

    resp = admin_client.post("/api/replace-database", json={"properties": incoming})

    body = resp.json()
    assert body["success"] is False
    assert body["stats"] == {"totalProcessed": 4, "newProperties": 1, "updatedProperties": 1, "errorCount": 1}
    assert body["errors"][0]["error"] == "Missing id"
    stored = collection.find_one({"id": "p2"})
    assert stored["price"] == 99000
    assert stored["beds"] == 3
    assert stored["updatedBy"] == "admin@example.com"
    assert collection.find_one({"id": "p3"})["createdBy"] == "admin@example.com"
    update = db.query(AuditLog).filter(AuditLog.action == "bulk_update").one()
    assert update.record_id == "p2"
    assert update.details == {"fieldsChanged": ["beds", "price"]}
    assert db.query(AuditLog).filter(AuditLog.action == "bulk_insert").count() == 1


def test_replace_with_progress_streams_events(admin_client, collection, db):
    collection.insert_one(listing("p1"))
    incoming = [listing("p1", town="Orihuela"), listing("p2"), listing("p1", town="Orihuela")]

    resp = admin_client.post("/api/replace-database-with-progress", json={"properties": incoming})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["x-processed-by"] == "admin@example.com"

    events = stream_events(resp)
    assert events[0]["type"] == "info"
    assert events[1] == {**events[1], "type": "progress", "action": "started", "processed": 0, "total": 3}
    actions = [event.get("action") for event in events if event["type"] == "progress"][1:]
    assert actions == ["updated", "inserted", "unchanged"]
    assert events[2]["fields"] == 1

    complete = events[-1]
    assert complete["type"] == "complete"
    assert complete["success"] is True
    assert complete["stats"]["processed"] == 3
    assert complete["stats"]["inserted"] == 1
    assert complete["stats"]["updated"] == 1
    assert db.query(AuditLog).filter(AuditLog.action.like("stream_%")).count() == 2


def test_stream_reports_missing_ids_and_continues(admin_client, collection):
    resp = admin_client.post("/api/replace-database-with-progress", json={"properties": [{"price": 1}, listing("p1")]})

    events = stream_events(resp)
    errors = [event for event in events if event["type"] == "error"]
    assert len(errors) == 1
    assert errors[0]["id"] == "N/A"
    assert events[-1]["stats"]["inserted"] == 1
    assert events[-1]["success"] is False


def test_export_json(admin_client, collection):
    collection.insert_many([listing("p1"), listing("p2")])

    body = admin_client.get("/api/export-database").json()

    assert body["count"] == 2
    assert body["exportedBy"] == "admin@example.com"
    assert all("_id" not in item for item in body["properties"])


def test_export_csv(admin_client, collection):
    collection.insert_one(listing("p1", features=[{"name": "Terraza"}, {"name": "Garaje"}]))

    resp = admin_client.get("/api/export-database", params={"format": "csv"})

    assert resp.headers["content-type"].startswith("text/csv")
    rows = list(csv.DictReader(io.StringIO(resp.text)))
    assert rows[0]["id"] == "p1"
    assert rows[0]["features"] == "Terraza | Garaje"
    assert rows[0]["images"] == "https://img.example.com/p1/1.jpg"


def test_database_routes_require_admin(client):
    assert client.get("/api/export-database").status_code == 401
    assert client.post("/api/replace-database", json={"properties": [listing("p1")]}).status_code == 401


def test_upload_rejects_non_finite_prices(admin_client, collection):
    resp = admin_client.post(
        "/api/upload-properties",
        content='{"properties": [{"id": "p1", "date": "2024-01-01", "price": Infinity, "type": "Villa"}]}',
        headers={"content-type": "application/json"},
    )

    assert resp.status_code == 400
    assert "Missing or invalid price" in resp.json()["detail"]["details"][0]["errors"]
    assert collection.count_documents({}) == 0


def test_stream_ends_with_error_frame_when_audit_write_fails(admin_client, collection, monkeypatch):
    def broken_audit(*args, **kwargs):
        raise SQLAlchemyError("audit table unavailable")

    monkeypatch.setattr("propertyhub.api.routes.database.audit_event", broken_audit)

    resp = admin_client.post("/api/replace-database-with-progress", json={"properties": [listing("p1")]})

    events = stream_events(resp)
    assert events[-1]["type"] == "error"
    assert events[-1]["fatal"] is True
    assert "audit table unavailable" in events[-1]["message"]


def test_export_csv_with_null_image_url(admin_client, collection):
    collection.insert_one(listing("p1", images=[{"id": "1", "url": None}], features=[{"name": None}, {"name": "Garaje"}]))

    resp = admin_client.get("/api/export-database", params={"format": "csv"})

    assert resp.status_code == 200
    rows = list(csv.DictReader(io.StringIO(resp.text)))
    assert rows[0]["images"] == ""
    assert rows[0]["features"] == " | Garaje"
