import math
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pymongo.collection import Collection

from propertyhub.core.config import get_settings
from propertyhub.core.errors import PropertyNotFoundError
from propertyhub.core.mongo import get_properties
from propertyhub.core.rate_limit import limiter
from propertyhub.services.properties import (
    build_public_query,
    distinct_values,
    find_by_slug,
    normalize_public_property,
    price_range,
    public_sort,
)

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/properties")
@limiter.limit("120/minute")
def list_public_properties(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=100),
    type: str | None = None,
    town: str | None = None,
    minPrice: int | None = None,
    maxPrice: int | None = None,
    minBeds: int | None = None,
    pool: bool | None = None,
    sortBy: Literal["date", "price", "beds"] = "date",
    sortOrder: Literal["asc", "desc"] = "desc",
    collection: Collection = Depends(get_properties),
):
    limit = limit or get_settings().PUBLIC_PAGE_SIZE
    query = build_public_query(type, town, minPrice, maxPrice, minBeds, pool)
    start = (page - 1) * limit

    total_items = collection.count_documents(query)
    docs = list(collection.find(query).sort(public_sort(sortBy, sortOrder)).skip(start).limit(limit))
    total_pages = max(1, math.ceil(total_items / limit))

    return {
        "properties": [normalize_public_property(doc, start + i) for i, doc in enumerate(docs)],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalItems": total_items,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
            "limit": limit,
        },
        "filters": {
            "availableTypes": distinct_values(collection, "type"),
            "availableTowns": distinct_values(collection, "town"),
            "priceRange": price_range(collection),
        },
    }


@router.get("/properties/{slug}")
@limiter.limit("120/minute")
def get_public_property(request: Request, slug: str, collection: Collection = Depends(get_properties)):
    try:
        doc = find_by_slug(collection, slug)
    except PropertyNotFoundError:
        raise HTTPException(status_code=404, detail="Property not found")
    return normalize_public_property(doc, 0)


@router.get("/filters")
@limiter.limit("120/minute")
def public_filters(request: Request, collection: Collection = Depends(get_properties)):
    return {
        "types": distinct_values(collection, "type"),
        "towns": distinct_values(collection, "town"),
        "priceRange": price_range(collection),
        "totalCount": collection.count_documents({}),
    }
