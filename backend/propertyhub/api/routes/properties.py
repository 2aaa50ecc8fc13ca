from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from pymongo import DESCENDING
from pymongo.collection import Collection
from sqlalchemy.orm import Session

from propertyhub.core.database import get_db
from propertyhub.core.deps import client_ip, require_admin
from propertyhub.core.errors import database_errors
from propertyhub.core.mongo import get_properties
from propertyhub.models.user import User
from propertyhub.schemas.auth import SessionUser
from propertyhub.schemas.property import PropertyPayload
from propertyhub.services.audit import audit_event
from propertyhub.services.properties import create_property, get_property, serialize_document, similar_properties

router = APIRouter(tags=["properties"])


@router.get("/properties")
def list_properties(
    collection: Collection = Depends(get_properties),
    current_user: User = Depends(require_admin),
):
    with database_errors("Property listing"):
        data = [serialize_document(doc) for doc in collection.find({}).sort("createdAt", DESCENDING)]
    return {
        "success": True,
        "data": data,
        "count": len(data),
        "user": SessionUser.model_validate(current_user),
    }


@router.post("/properties", status_code=201)
def create_property_route(
    payload: PropertyPayload,
    request: Request,
    collection: Collection = Depends(get_properties),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    with database_errors("Create"):
        doc = create_property(collection, payload.document(), current_user.email)
    audit_event(
        db,
        "property_create",
        "property",
        actor=current_user.email,
        record_id=doc["id"],
        ip_address=client_ip(request),
    )
    return {
        "success": True,
        "data": serialize_document(doc),
        "message": "Property created successfully",
        "createdBy": current_user.email,
    }


@router.get("/dashboard/property/{slug}")
def dashboard_property(
    slug: str,
    collection: Collection = Depends(get_properties),
    current_user: User = Depends(require_admin),
):
    with database_errors("Property detail"):
        doc = get_property(collection, slug)
        similar = similar_properties(collection, doc)
    return {
        "success": True,
        "data": serialize_document(doc),
        "similar": similar,
        "similarCount": len(similar),
        "requestedBy": current_user.email,
        "requestedAt": datetime.now(timezone.utc),
        "message": f"Property details loaded for {slug}",
    }
