"""Queries and writes against the Property collection."""

import logging
import math
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterator

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError

from propertyhub.core.errors import PropertyNotFoundError, PropertyValidationError
from propertyhub.services.diff import STORE_FIELDS, canonical_json
from propertyhub.services.formatting import (
    admin_formatted_price,
    format_date_es_long,
    format_date_hu,
    parse_date,
    public_formatted_price,
    to_number,
)

logger = logging.getLogger(__name__)

TEXT_FILTERS = ("id", "type", "town", "province", "country", "agencia")
RANGE_FILTERS = (
    ("price", "minPrice", "maxPrice"),
    ("beds", "minBeds", "maxBeds"),
    ("baths", "minBaths", "maxBaths"),
    ("surface_area", "min_surface_area", "max_surface_area"),
)
FLAG_FILTERS = ("pool", "new_build", "part_ownership", "leasehold")
OPTION_FIELDS = {
    "types": "type",
    "towns": "town",
    "provinces": "province",
    "countries": "country",
    "agencies": "agencia",
    "energyRatings": "energy_rating",
}
PUBLIC_SORT_FIELDS = {"date": "createdAt", "price": "price", "beds": "beds"}
SIMILAR_FIELDS = {"_id": 1, "id": 1, "type": 1, "price": 1, "formatted_price": 1, "town": 1, "images": 1}
DUPLICATE_KEY = 11000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize_document(value: Any) -> Any:
    """Make a stored document JSON-safe: ObjectIds become strings and datetimes ISO strings."""
    if isinstance(value, dict):
        return {key: serialize_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_document(item) for item in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def without_store_fields(doc: dict) -> dict:
    return {key: value for key, value in doc.items() if key not in STORE_FIELDS}


def build_admin_filter(params: dict[str, Any]) -> dict:
    query: dict[str, Any] = {}
    for field in TEXT_FILTERS:
        value = params.get(field)
        if value:
            query[field] = {"$regex": re.escape(str(value)), "$options": "i"}

    for field, low_key, high_key in RANGE_FILTERS:
        low, high = params.get(low_key), params.get(high_key)
        bounds = {}
        if low is not None:
            bounds["$gte"] = low
        if high is not None:
            bounds["$lte"] = high
        if bounds:
            query[field] = bounds

    for field in FLAG_FILTERS:
        value = params.get(field)
        if value is not None:
            query[field] = value

    if params.get("energy_rating"):
        query["energy_rating"] = params["energy_rating"]
    return query


def list_admin_page(collection: Collection, query: dict, page: int, page_size: int) -> tuple[list[dict], int]:
    skip = (page - 1) * page_size
    cursor = collection.find(query).sort("createdAt", DESCENDING).skip(skip).limit(page_size)
    return [serialize_document(doc) for doc in cursor], collection.count_documents(query)


def build_public_query(
    type: str | None = None,
    town: str | None = None,
    min_price: int | None = None,
    max_price: int | None = None,
    min_beds: int | None = None,
    pool: bool | None = None,
) -> dict:
    query: dict[str, Any] = {}
    if type:
        query["type"] = type
    if town:
        query["town"] = town
    if min_price is not None or max_price is not None:
        query["price"] = {}
        if min_price is not None:
            query["price"]["$gte"] = min_price
        if max_price is not None:
            query["price"]["$lte"] = max_price
    if min_beds is not None:
        query["beds"] = {"$gte": min_beds}
    if pool is not None:
        query["pool"] = 1 if pool else 0
    return query


def public_sort(sort_by: str, sort_order: str) -> list[tuple[str, int]]:
    direction = -1 if sort_order == "desc" else 1
    return [(PUBLIC_SORT_FIELDS.get(sort_by, "createdAt"), direction), ("_id", -1)]


def _text(value: Any, default: str = "") -> str:
    return default if value is None else str(value)


def _optional_text(value: Any) -> str | None:
    return str(value) if value else None


def _optional_number(value: Any) -> float | int | None:
    return to_number(value) if value is not None else None


def normalize_public_property(doc: dict, index: int) -> dict:
    """Shape a stored listing for the public site with defaults filled in."""
    when = parse_date(doc.get("date")) or utcnow()
    price = to_number(doc.get("price"), 0)
    currency = _text(doc.get("currency"), "EUR")
    return {
        "id": _text(doc.get("_id") or doc.get("id") or f"prop-{index}"),
        "date": when.isoformat(),
        "agencia": _text(doc.get("agencia")),
        "email": _text(doc.get("email")),
        "telefono": _text(doc.get("telefono")),
        "ref": _text(doc.get("ref"), f"REF-{index}"),
        "price": price,
        "currency": currency,
        "price_freq": _text(doc.get("price_freq")),
        "new_build": to_number(doc.get("new_build")),
        "part_ownership": to_number(doc.get("part_ownership")),
        "leasehold": to_number(doc.get("leasehold")),
        "type": _text(doc.get("type"), "Apartamento"),
        "country": _text(doc.get("country"), "España"),
        "province": _text(doc.get("province")),
        "town": _text(doc.get("town")),
        "location_detail": _text(doc.get("location_detail")),
        "cp": _text(doc.get("cp")),
        "postal_code": _text(doc.get("postal_code")),
        "beds": to_number(doc.get("beds")),
        "baths": to_number(doc.get("baths")),
        "estado_propiedad": to_number(doc.get("estado_propiedad")),
        "antiguedad": to_number(doc.get("antiguedad")),
        "pool": to_number(doc.get("pool")),
        "energy_rating": _optional_text(doc.get("energy_rating")),
        "title_extra": _optional_text(doc.get("title_extra")),
        "location": _optional_text(doc.get("location")),
        "latitude": _optional_number(doc.get("latitude")),
        "longitude": _optional_number(doc.get("longitude")),
        "surface_area": _optional_number(doc.get("surface_area")),
        "url": _optional_text(doc.get("url")),
        "description": _optional_text(doc.get("description")),
        "images": serialize_document(doc.get("images")) if isinstance(doc.get("images"), list) else [],
        "features": serialize_document(doc.get("features")) if isinstance(doc.get("features"), list) else [],
        "formatted_date": format_date_es_long(when),
        "formatted_price": public_formatted_price(price, "EUR"),
        "_index": index,
    }


def price_range(collection: Collection, default_max: float | int = 1_000_000) -> dict:
    stats = list(
        collection.aggregate([{"$group": {"_id": None, "min": {"$min": "$price"}, "max": {"$max": "$price"}}}])
    )
    if not stats:
        return {"min": 0, "max": default_max}
    return {
        "min": stats[0].get("min") if stats[0].get("min") is not None else 0,
        "max": stats[0].get("max") if stats[0].get("max") is not None else default_max,
    }


def distinct_values(collection: Collection, field: str) -> list:
    # Schemaless fields can mix strings and numbers.
    return sorted((value for value in collection.distinct(field) if value), key=str)


def find_by_slug(collection: Collection, slug: str) -> dict:
    key = slug.rsplit("-", 1)[-1]
    doc = collection.find_one({"$or": [{"id": key}, {"ref": key}]})
    if doc is None:
        raise PropertyNotFoundError(slug)
    return doc


def get_property(collection: Collection, property_id: str) -> dict:
    doc = collection.find_one({"id": property_id})
    if doc is None:
        raise PropertyNotFoundError(property_id)
    return doc


def similar_properties(collection: Collection, doc: dict, limit: int = 3) -> list[dict]:
    cursor = collection.find(
        {"id": {"$ne": doc.get("id")}, "type": doc.get("type"), "town": doc.get("town")},
        SIMILAR_FIELDS,
    ).limit(limit)
    return [serialize_document(item) for item in cursor]


def property_options(collection: Collection) -> dict:
    """Distinct values and range statistics for the admin filter form."""
    with ThreadPoolExecutor(max_workers=len(OPTION_FIELDS)) as pool:
        futures = {key: pool.submit(distinct_values, collection, field) for key, field in OPTION_FIELDS.items()}
        options = {key: future.result() for key, future in futures.items()}

    price_stats = list(
        collection.aggregate(
            [
                {
                    "$group": {
                        "_id": None,
                        "minPrice": {"$min": "$price"},
                        "maxPrice": {"$max": "$price"},
                        "avgPrice": {"$avg": "$price"},
                    }
                }
            ]
        )
    )
    room_stats = list(
        collection.aggregate(
            [
                {
                    "$group": {
                        "_id": None,
                        "minBeds": {"$min": "$beds"},
                        "maxBeds": {"$max": "$beds"},
                        "minBaths": {"$min": "$baths"},
                        "maxBaths": {"$max": "$baths"},
                        "minSurface": {"$min": "$surface_area"},
                        "maxSurface": {"$max": "$surface_area"},
                    }
                }
            ]
        )
    )

    options["priceRange"] = price_stats[0] if price_stats else {"minPrice": 0, "maxPrice": 10_000_000, "avgPrice": 0}
    options["roomRange"] = (
        room_stats[0]
        if room_stats
        else {"minBeds": 1, "maxBeds": 10, "minBaths": 1, "maxBaths": 10, "minSurface": 50, "maxSurface": 1000}
    )
    options["priceRange"].pop("_id", None)
    options["roomRange"].pop("_id", None)
    options["totalProperties"] = collection.count_documents({})
    options["poolProperties"] = collection.count_documents({"pool": 1})
    options["newBuildProperties"] = collection.count_documents({"new_build": 1})
    return options


def require_price_and_type(data: dict) -> None:
    if not data.get("price") or not data.get("type"):
        raise PropertyValidationError("Price and type are required")


def create_property(collection: Collection, data: dict, actor: str) -> dict:
    if not data.get("id"):
        raise PropertyValidationError("Property id is required")
    require_price_and_type(data)
    if collection.find_one({"id": data["id"]}, {"_id": 1}):
        raise PropertyValidationError(f"Property already exists: {data['id']}")

    now = utcnow()
    doc = {key: value for key, value in data.items() if key != "_id"}
    doc.setdefault("currency", "EUR")
    doc.update({"createdAt": now, "updatedAt": now, "createdBy": actor})
    try:
        collection.insert_one(doc)
    except DuplicateKeyError:
        raise PropertyValidationError(f"Property already exists: {data['id']}")
    return doc


def update_property(collection: Collection, property_id: str, data: dict, actor: str) -> dict:
    require_price_and_type(data)
    changes = {key: value for key, value in data.items() if key not in ("id", "_id")}
    changes.update(
        {
            "updatedBy": actor,
            "updatedAt": utcnow(),
            "formatted_price": admin_formatted_price(data["price"], data.get("currency")),
            "formatted_date": format_date_hu(data.get("date")),
        }
    )
    doc = collection.find_one_and_update({"id": property_id}, {"$set": changes}, return_document=ReturnDocument.AFTER)
    if doc is None:
        raise PropertyNotFoundError(property_id)
    return doc


def delete_property(collection: Collection, property_id: str) -> dict:
    doc = collection.find_one_and_delete({"id": property_id})
    if doc is None:
        raise PropertyNotFoundError(property_id)
    return doc


def set_field(collection: Collection, property_id: str, field_name: str, new_value: Any, actor: str) -> None:
    if not property_id or not field_name:
        raise PropertyValidationError("propertyId and fieldName are required")
    if field_name in ("id", "_id") or field_name.startswith("$"):
        raise PropertyValidationError(f"Field cannot be updated: {field_name}")

    result = collection.update_one(
        {"id": property_id},
        {"$set": {field_name: new_value, "updatedBy": actor, "updatedAt": utcnow()}},
    )
    if result.matched_count == 0:
        raise PropertyNotFoundError(property_id)


def validate_upload(properties: list) -> list[dict]:
    errors = []
    seen: set = set()
    for index, record in enumerate(properties):
        problems = []
        if not isinstance(record, dict):
            errors.append({"index": index, "id": "N/A", "errors": ["Record must be an object"]})
            continue

        record_id = record.get("id")
        if not record_id:
            problems.append("Missing id")
        elif record_id in seen:
            problems.append(f"Duplicate id: {record_id}")
        else:
            seen.add(record_id)

        if not record.get("date"):
            problems.append("Missing date")
        price = record.get("price")
        if (
            not price
            or isinstance(price, bool)
            or not isinstance(price, (int, float))
            or not math.isfinite(price)
        ):
            problems.append("Missing or invalid price")
        if not record.get("type"):
            problems.append("Missing property type")

        images = record.get("images")
        if images:
            if not isinstance(images, list):
                problems.append("images must be a list")
            else:
                for image_index, image in enumerate(images):
                    if not isinstance(image, dict) or not image.get("url"):
                        problems.append(f"images[{image_index}]: missing url")

        features = record.get("features")
        if features:
            if not isinstance(features, list):
                problems.append("features must be a list")
            else:
                for feature_index, feature in enumerate(features):
                    if not isinstance(feature, dict) or not feature.get("name"):
                        problems.append(f"features[{feature_index}]: missing name")

        if problems:
            errors.append({"index": index, "id": record_id or "N/A", "errors": problems})
    return errors


def _duplicate_summary(record: dict) -> dict:
    return {"id": record.get("id"), "title": record.get("title_extra") or f"{record.get('type')} - {record.get('town')}"}


def insert_new_properties(collection: Collection, properties: list[dict], actor: str | None = None) -> dict:
    """Insert the records whose ids are not stored yet, skipping the rest."""
    ids = [record["id"] for record in properties]
    existing = {doc["id"] for doc in collection.find({"id": {"$in": ids}}, {"id": 1})}
    new_records = [record for record in properties if record["id"] not in existing]
    duplicates = [_duplicate_summary(record) for record in properties if record["id"] in existing]

    if not new_records:
        return {
            "insertedCount": 0,
            "insertedIds": [],
            "errors": [f"All {len(properties)} properties already exist"],
            "duplicates": duplicates,
        }

    now = utcnow()
    documents = [{**record, "createdAt": now, "updatedAt": now, "createdBy": actor} for record in new_records]
    try:
        result = collection.insert_many(documents, ordered=False)
    except BulkWriteError as exc:
        write_errors = exc.details.get("writeErrors", [])
        duplicate_errors = [e for e in write_errors if e.get("code") == DUPLICATE_KEY]
        other_errors = [e for e in write_errors if e.get("code") != DUPLICATE_KEY]
        messages = []
        if duplicate_errors:
            messages.append(f"{len(duplicate_errors)} duplicate properties")
        if other_errors:
            messages.append(f"{len(other_errors)} other errors")
        logger.warning("Bulk insert finished with %s write errors", len(write_errors))
        return {
            "insertedCount": exc.details.get("nInserted", 0),
            "insertedIds": [],
            "errors": messages,
            "duplicates": duplicates,
            "writeErrors": [
                {"index": e.get("index"), "code": e.get("code"), "message": e.get("errmsg")} for e in write_errors
            ],
        }

    return {
        "insertedCount": len(result.inserted_ids),
        "insertedIds": [record["id"] for record in new_records],
        "errors": [f"{len(duplicates)} properties already existed"] if duplicates else [],
        "duplicates": duplicates,
    }


def changed_fields(existing: dict, incoming: dict) -> dict:
    return {
        key: value
        for key, value in incoming.items()
        if key not in ("id", "_id") and canonical_json(serialize_document(existing.get(key))) != canonical_json(value)
    }


def _snapshot(stats: dict) -> dict:
    return {**stats, "errorDetails": list(stats["errorDetails"])}


def upsert_properties(
    collection: Collection,
    properties: list,
    actor: str,
    on_write: Callable[[str, str, dict], None] | None = None,
    pause: Callable[[], None] | None = None,
    pause_every: int = 10,
) -> Iterator[dict]:
    """Insert unknown ids and update changed fields of known ids, one record at a time.

    Yields a progress or error event per record and a final ``complete`` event
    carrying the stats. A failing record does not stop the run.
    """
    total = len(properties)
    stats: dict[str, Any] = {"processed": 0, "inserted": 0, "updated": 0, "errors": 0, "errorDetails": []}
    yield {"type": "progress", "processed": 0, "total": total, "action": "started", "stats": _snapshot(stats)}

    for record in properties:
        stats["processed"] += 1
        record_id = record.get("id") if isinstance(record, dict) else None
        if not record_id:
            stats["errors"] += 1
            stats["errorDetails"].append({"error": "Missing id", "data": record})
            yield {"type": "error", "id": "N/A", "message": "Missing id", "processed": stats["processed"], "total": total}
            continue

        try:
            existing = collection.find_one({"id": record_id})
            if existing is not None:
                changes = changed_fields(existing, record)
                if changes:
                    collection.update_one(
                        {"id": record_id},
                        {"$set": {**changes, "updatedBy": actor, "updatedAt": utcnow()}},
                    )
                    stats["updated"] += 1
                    if on_write:
                        on_write("update", record_id, {"fieldsChanged": sorted(changes)})
                    event = {"action": "updated", "fields": len(changes)}
                else:
                    event = {"action": "unchanged"}
            else:
                now = utcnow()
                collection.insert_one(
                    {
                        **{k: v for k, v in record.items() if k != "_id"},
                        "createdBy": actor,
                        "createdAt": now,
                        "updatedBy": actor,
                        "updatedAt": now,
                    }
                )
                stats["inserted"] += 1
                if on_write:
                    on_write("insert", record_id, {})
                event = {"action": "inserted"}
        except PyMongoError as exc:
            stats["errors"] += 1
            stats["errorDetails"].append({"id": record_id, "error": str(exc)})
            logger.error("Upsert of %s failed: %s", record_id, exc)
            yield {
                "type": "error",
                "id": record_id,
                "message": str(exc),
                "processed": stats["processed"],
                "total": total,
                "stats": _snapshot(stats),
            }
            continue

        yield {
            "type": "progress",
            "processed": stats["processed"],
            "total": total,
            "id": record_id,
            "stats": _snapshot(stats),
            **event,
        }
        if pause and pause_every and stats["processed"] % pause_every == 0:
            pause()

    logger.info(
        "Upsert by %s finished: %s inserted, %s updated, %s errors",
        actor,
        stats["inserted"],
        stats["updated"],
        stats["errors"],
    )
    yield {"type": "complete", "stats": _snapshot(stats), "success": stats["errors"] == 0}
