from conftest import listing

from propertyhub.models.audit import AuditLog


def test_batch_update_reports_failures_per_change(admin_client, collection, db):
    collection.insert_many([listing("p1"), listing("p2")])

    resp = admin_client.patch(
        "/api/batch-update-properties",
        json={
            "changes": [
                {"propertyId": "p1", "fieldName": "price", "newValue": 175000, "oldValue": 150000},
                {"propertyId": "missing", "fieldName": "price", "newValue": 1},
                {"propertyId": "p2", "fieldName": "town", "newValue": "Orihuela"},
            ]
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is False
    results = body["results"]
    assert results["successCount"] == 2
    assert results["errorCount"] == 1
    assert results["failed"][0]["propertyId"] == "missing"
    assert "missing" in results["failed"][0]["error"]
    assert [item["propertyId"] for item in results["successful"]] == ["p1", "p2"]

    assert collection.find_one({"id": "p1"})["price"] == 175000
    assert collection.find_one({"id": "p2"})["town"] == "Orihuela"
    assert collection.find_one({"id": "p2"})["updatedBy"] == "admin@example.com"
    assert db.query(AuditLog).filter(AuditLog.action == "batch_update").count() == 2


def test_batch_update_rejects_identity_fields(admin_client, collection):
    collection.insert_one(listing("p1"))

    resp = admin_client.patch(
        "/api/batch-update-properties",
        json={"changes": [{"propertyId": "p1", "fieldName": "id", "newValue": "p9"}]},
    )

    assert resp.json()["results"]["errorCount"] == 1
    assert collection.find_one({"id": "p1"}) is not None


def test_batch_update_needs_changes(admin_client):
    assert admin_client.patch("/api/batch-update-properties", json={"changes": []}).status_code == 400


def test_single_field_update(admin_client, collection, db):
    collection.insert_one(listing("p1"))

    resp = admin_client.patch(
        "/api/update-property-field",
        json={"propertyId": "p1", "fieldName": "description", "newValue": "Reformado"},
    )

    assert resp.status_code == 200
    assert collection.find_one({"id": "p1"})["description"] == "Reformado"
    assert db.query(AuditLog).filter(AuditLog.action == "property_field_update").count() == 1


def test_single_field_update_missing_property(admin_client):
    resp = admin_client.patch("/api/update-property-field", json={"propertyId": "x", "fieldName": "beds", "newValue": 1})
    assert resp.status_code == 404


def test_field_update_requires_admin(client):
    resp = client.patch("/api/update-property-field", json={"propertyId": "x", "fieldName": "beds", "newValue": 1})
    assert resp.status_code == 401


def test_compare_uploaded_files(admin_client):
    resp = admin_client.post(
        "/api/compare",
        json={
            "oldData": [{"id": "1", "price": 100}, {"id": "3", "price": 10}],
            "newData": [{"id": "1", "price": 120}, {"id": "2", "price": 50}],
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["summary"] == {"totalModified": 1, "totalDeleted": 1, "totalAdded": 1}
    assert body["modified"][0]["changes"] == [
        {"field": "price", "type": "modified", "oldValue": 100, "newValue": 120}
    ]
    assert body["dataInfo"] == {"oldDataCount": 2, "newDataCount": 2}


def test_compare_against_the_database(admin_client, collection):
    collection.insert_many([listing("p1"), listing("p2"), listing("gone")])
    incoming = [listing("p1"), listing("p2", price=160000), listing("p3")]

    resp = admin_client.post("/api/compare-database", json={"jsonData": incoming})

    body = resp.json()
    assert body["summary"] == {"totalModified": 1, "totalDeleted": 0, "totalAdded": 1}
    assert body["modified"][0]["id"] == "p2"
    assert body["added"][0]["id"] == "p3"
    assert body["metadata"]["databaseCount"] == 2
    assert body["metadata"]["jsonCount"] == 3


def test_audit_log_by_record(admin_client, collection):
    collection.insert_one(listing("p1"))
    admin_client.patch("/api/update-property-field", json={"propertyId": "p1", "fieldName": "beds", "newValue": 3})

    entries = admin_client.get("/api/audit", params={"record_id": "p1"}).json()

    assert [entry["action"] for entry in entries] == ["property_field_update"]
    assert entries[0]["details"] == {"field": "beds", "newValue": 3}


def test_compare_against_the_database_needs_ids(admin_client, collection):
    collection.insert_one(listing("p1"))

    resp = admin_client.post("/api/compare-database", json={"jsonData": [{"price": 1}, {"id": None}]})

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "JSON data contains no valid ids"
