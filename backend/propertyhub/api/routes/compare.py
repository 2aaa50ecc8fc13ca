import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from pymongo.collection import Collection

from propertyhub.core.deps import require_admin
from propertyhub.core.errors import database_errors
from propertyhub.core.mongo import get_properties
from propertyhub.models.user import User
from propertyhub.schemas.compare import CompareDatabaseRequest, CompareRequest
from propertyhub.services.diff import compare_property_data, strip_store_fields
from propertyhub.services.properties import serialize_document

logger = logging.getLogger(__name__)

router = APIRouter(tags=["compare"])


@router.post("/compare")
def compare(payload: CompareRequest, current_user: User = Depends(require_admin)):
    result = compare_property_data(payload.oldData, payload.newData)
    return {
        "success": True,
        **result,
        "comparedBy": current_user.email,
        "comparedAt": datetime.now(timezone.utc),
        "dataInfo": {"oldDataCount": len(payload.oldData), "newDataCount": len(payload.newData)},
    }


@router.post("/compare-database")
def compare_database(
    payload: CompareDatabaseRequest,
    collection: Collection = Depends(get_properties),
    current_user: User = Depends(require_admin),
):
    ids = [record["id"] for record in payload.jsonData if record.get("id") is not None]
    if not ids:
        raise HTTPException(status_code=400, detail={"success": False, "error": "JSON data contains no valid ids"})
    with database_errors("Database comparison"):
        stored = [strip_store_fields(serialize_document(doc)) for doc in collection.find({"id": {"$in": ids}})]

    result = compare_property_data(stored, payload.jsonData)
    logger.info("Database comparison by %s: %s", current_user.email, result["summary"])
    return {
        "success": True,
        **result,
        "metadata": {
            "databaseCount": len(stored),
            "jsonCount": len(payload.jsonData),
            "comparedBy": current_user.email,
            "comparedAt": datetime.now(timezone.utc),
        },
    }
