import logging
import math
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from pymongo.collection import Collection
from sqlalchemy.orm import Session

from propertyhub.core.config import get_settings
from propertyhub.core.database import get_db
from propertyhub.core.deps import client_ip, require_admin
from propertyhub.core.errors import database_errors
from propertyhub.core.mongo import get_properties
from propertyhub.models.user import User
from propertyhub.schemas.property import AdminPropertyFilters, PropertyPayload
from propertyhub.services.audit import audit_event
from propertyhub.services.properties import (
    build_admin_filter,
    delete_property,
    get_property,
    list_admin_page,
    property_options,
    serialize_document,
    update_property,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/properties", tags=["admin"])


@router.get("")
def list_admin_properties(
    filters: AdminPropertyFilters = Depends(),
    collection: Collection = Depends(get_properties),
    current_user: User = Depends(require_admin),
):
    page_size = get_settings().ADMIN_PAGE_SIZE
    query = build_admin_filter(filters.model_dump(exclude={"page"}))
    logger.debug("Admin filter %s by %s", query, current_user.email)

    with database_errors("Admin property listing"):
        data, total = list_admin_page(collection, query, filters.page, page_size)

    total_pages = math.ceil(total / page_size)
    return {
        "success": True,
        "data": data,
        "pagination": {
            "currentPage": filters.page,
            "totalPages": total_pages,
            "totalCount": total,
            "limit": page_size,
            "hasNextPage": filters.page < total_pages,
            "hasPrevPage": filters.page > 1,
        },
        "search": {"id": filters.id, "activeFilters": len(query)},
        "requestedBy": current_user.email,
        "requestedAt": datetime.now(timezone.utc),
        "message": f"Found {total} properties with {len(query)} filters applied",
    }


@router.get("/options")
def admin_property_options(
    collection: Collection = Depends(get_properties),
    current_user: User = Depends(require_admin),
):
    with database_errors("Property options"):
        options = property_options(collection)
    return {
        "success": True,
        "data": options,
        "requestedBy": current_user.email,
        "requestedAt": datetime.now(timezone.utc),
        "message": "Property options loaded successfully",
    }


@router.get("/{property_id}")
def get_admin_property(
    property_id: str,
    collection: Collection = Depends(get_properties),
    current_user: User = Depends(require_admin),
):
    with database_errors("Property lookup"):
        doc = get_property(collection, property_id)
    return {"success": True, "data": serialize_document(doc), "requestedBy": current_user.email}


@router.put("/{property_id}")
def update_admin_property(
    property_id: str,
    payload: PropertyPayload,
    request: Request,
    collection: Collection = Depends(get_properties),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    data = payload.document()
    with database_errors("Update"):
        doc = update_property(collection, property_id, data, current_user.email)
    audit_event(
        db,
        "property_update",
        "property",
        actor=current_user.email,
        record_id=property_id,
        ip_address=client_ip(request),
        details={"fields": sorted(k for k in data if k not in ("id", "_id"))},
    )
    return {
        "success": True,
        "data": serialize_document(doc),
        "message": "Property updated successfully",
        "updatedBy": current_user.email,
    }


@router.delete("/{property_id}")
def delete_admin_property(
    property_id: str,
    request: Request,
    collection: Collection = Depends(get_properties),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    with database_errors("Delete"):
        doc = delete_property(collection, property_id)
    audit_event(
        db,
        "property_delete",
        "property",
        actor=current_user.email,
        record_id=property_id,
        ip_address=client_ip(request),
    )
    return {
        "success": True,
        "message": "Property deleted successfully",
        "deletedProperty": {"id": doc.get("id"), "type": doc.get("type"), "town": doc.get("town")},
        "deletedBy": current_user.email,
    }
