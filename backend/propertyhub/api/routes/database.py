import json
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from propertyhub.core.config import get_settings
from propertyhub.core.database import SessionLocal, get_db
from propertyhub.core.deps import client_ip, require_admin
from propertyhub.core.errors import PropertyHubError, database_errors
from propertyhub.core.mongo import get_properties
from propertyhub.models.user import User
from propertyhub.schemas.property import BatchUpdateRequest, FieldUpdateRequest, PropertiesPayload
from propertyhub.services.audit import audit_event
from propertyhub.services.export import export_properties, properties_csv
from propertyhub.services.properties import insert_new_properties, set_field, upsert_properties, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["database"])


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.post("/upload-properties")
def upload_properties(
    payload: PropertiesPayload,
    request: Request,
    collection: Collection = Depends(get_properties),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    properties = payload.properties
    errors = validate_upload(properties)
    if errors:
        logger.info("Upload rejected: %s invalid records", len(errors))
        raise HTTPException(status_code=400, detail={"error": "Validation errors found", "details": errors[:5]})

    with database_errors("Upload"):
        result = insert_new_properties(collection, properties, current_user.email)

    audit_event(
        db,
        "upload_insert",
        "property",
        actor=current_user.email,
        ip_address=client_ip(request),
        details={"inserted": result["insertedCount"], "total": len(properties)},
    )
    inserted = result["insertedCount"]
    return {
        "success": True,
        "message": f"Uploaded {inserted} properties" if inserted else "No new properties were saved",
        "insertedCount": inserted,
        "totalCount": len(properties),
        "duplicateCount": len(result.get("duplicates", [])),
        "insertedIds": result.get("insertedIds", []),
        "duplicates": result.get("duplicates", []),
        "errors": result.get("errors", []),
        "writeErrors": result.get("writeErrors", []),
        "timestamp": _now().isoformat(),
    }


@router.get("/export-database")
def export_database(
    format: str = "json",
    collection: Collection = Depends(get_properties),
    current_user: User = Depends(require_admin),
):
    with database_errors("Database export"):
        properties = export_properties(collection)
    logger.info("Export of %s properties by %s", len(properties), current_user.email)

    if format == "csv":
        return Response(
            content=properties_csv(properties),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=properties.csv"},
        )
    return {
        "success": True,
        "count": len(properties),
        "properties": properties,
        "exportDate": _now().isoformat(),
        "message": f"Exported {len(properties)} properties",
        "exportedBy": current_user.email,
        "exportType": "full_database_export",
    }


@router.post("/replace-database")
def replace_database(
    payload: PropertiesPayload,
    request: Request,
    collection: Collection = Depends(get_properties),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    ip = client_ip(request)

    def record(kind: str, record_id: str, details: dict) -> None:
        audit_event(
            db,
            f"bulk_{kind}",
            "property",
            actor=current_user.email,
            record_id=record_id,
            ip_address=ip,
            details=details or None,
        )

    final = {}
    for event in upsert_properties(collection, payload.properties, current_user.email, on_write=record):
        final = event
    stats = final["stats"]
    success = final["success"]

    return {
        "success": success,
        "message": (
            f"Processed all {stats['processed']} properties"
            if success
            else f"{stats['processed'] - stats['errors']}/{stats['processed']} properties processed"
        ),
        "stats": {
            "totalProcessed": stats["processed"],
            "newProperties": stats["inserted"],
            "updatedProperties": stats["updated"],
            "errorCount": stats["errors"],
        },
        "errors": stats["errorDetails"][:10],
        "processedBy": current_user.email,
        "processedAt": _now().isoformat(),
    }


def _frame(event: dict) -> str:
    return f"data: {json.dumps(event, default=str)}\n\n"


@router.post("/replace-database-with-progress")
def replace_database_with_progress(
    payload: PropertiesPayload,
    request: Request,
    collection: Collection = Depends(get_properties),
    current_user: User = Depends(require_admin),
):
    settings = get_settings()
    actor = current_user.email
    ip = client_ip(request)
    properties = payload.properties
    logger.info("Streaming upsert of %s properties by %s", len(properties), actor)

    def events():
        # The request-scoped session is closed before the body is streamed.
        db = SessionLocal()
        try:

            def record(kind: str, record_id: str, details: dict) -> None:
                audit_event(
                    db,
                    f"stream_{kind}",
                    "property",
                    actor=actor,
                    record_id=record_id,
                    ip_address=ip,
                    details=details or None,
                )

            yield _frame({"type": "info", "message": f"Database connection ready ({actor})"})
            for event in upsert_properties(
                collection,
                properties,
                actor,
                on_write=record,
                pause=lambda: time.sleep(settings.STREAM_PAUSE_SECONDS),
                pause_every=settings.STREAM_PAUSE_EVERY,
            ):
                if event["type"] == "complete":
                    event["message"] = f"Database update finished ({actor})"
                yield _frame(event)
        except (PyMongoError, SQLAlchemyError) as exc:
            db.rollback()
            logger.exception("Streaming upsert failed")
            yield _frame({"type": "error", "message": f"Database update failed: {exc}", "fatal": True})
        finally:
            db.close()

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Processed-By": actor,
            "X-Process-Start": _now().isoformat(),
        },
    )


@router.patch("/update-property-field")
def update_property_field(
    payload: FieldUpdateRequest,
    request: Request,
    collection: Collection = Depends(get_properties),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    with database_errors("Field update"):
        set_field(collection, payload.propertyId, payload.fieldName, payload.newValue, current_user.email)
    audit_event(
        db,
        "property_field_update",
        "property",
        actor=current_user.email,
        record_id=payload.propertyId,
        ip_address=client_ip(request),
        details={"field": payload.fieldName, "newValue": payload.newValue},
    )
    return {
        "success": True,
        "message": f"{payload.fieldName} updated",
        "propertyId": payload.propertyId,
        "fieldName": payload.fieldName,
        "newValue": payload.newValue,
    }


@router.patch("/batch-update-properties")
def batch_update_properties(
    payload: BatchUpdateRequest,
    request: Request,
    collection: Collection = Depends(get_properties),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    actor = current_user.email
    ip = client_ip(request)
    results = {
        "successful": [],
        "failed": [],
        "totalCount": len(payload.changes),
        "successCount": 0,
        "errorCount": 0,
    }

    for change in payload.changes:
        try:
            set_field(collection, change.propertyId, change.fieldName, change.newValue, actor)
        except (PropertyHubError, PyMongoError) as exc:
            results["failed"].append(
                {"propertyId": change.propertyId, "fieldName": change.fieldName, "error": str(exc)}
            )
            results["errorCount"] += 1
            logger.warning("Batch change %s.%s failed: %s", change.propertyId, change.fieldName, exc)
            continue

        audit_event(
            db,
            "batch_update",
            "property",
            actor=actor,
            record_id=change.propertyId,
            ip_address=ip,
            details={"field": change.fieldName, "oldValue": change.oldValue, "newValue": change.newValue},
        )
        results["successful"].append(
            {
                "propertyId": change.propertyId,
                "fieldName": change.fieldName,
                "newValue": change.newValue,
                "oldValue": change.oldValue,
                "updatedBy": actor,
            }
        )
        results["successCount"] += 1

    success = results["errorCount"] == 0
    return {
        "success": success,
        "message": (
            f"All {results['successCount']} changes applied"
            if success
            else f"{results['successCount']}/{results['totalCount']} changes applied, {results['errorCount']} failed"
        ),
        "results": results,
        "batchExecutedBy": actor,
        "batchExecutedAt": _now().isoformat(),
    }
