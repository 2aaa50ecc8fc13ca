"""Field-level comparison of two property collections.

Records are matched by their ``id``. The result lists the records that only
exist on one side and, for records present on both sides, every changed field
with a dotted path. ``images`` are matched by URL and ``features`` by name.
"""

import json
from typing import Any, Iterable

STORE_FIELDS = ("_id", "__v", "createdAt", "updatedAt", "createdBy", "updatedBy")

_MISSING = object()


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str, ensure_ascii=False)


def strip_store_fields(record: dict) -> dict:
    return {key: value for key, value in record.items() if key not in STORE_FIELDS}


def _index_by_id(records: Iterable[dict]) -> dict:
    indexed = {}
    for record in records:
        if not isinstance(record, dict):
            continue
        record_id = record.get("id")
        if record_id is None:
            continue
        indexed[record_id] = record
    return indexed


def _same_scalar(old: Any, new: Any) -> bool:
    # True == 1 in Python; keep booleans and numbers apart.
    if isinstance(old, bool) or isinstance(new, bool):
        return type(old) is type(new) and old == new
    return old == new


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _urls(images: list) -> list:
    return [image.get("url") for image in images if isinstance(image, dict)]


def compare_images(old_images: Any, new_images: Any) -> list[dict]:
    old_images = [image for image in _as_list(old_images) if isinstance(image, dict)]
    new_images = [image for image in _as_list(new_images) if isinstance(image, dict)]
    old_urls = set(_urls(old_images))
    new_urls = set(_urls(new_images))
    changes = []

    deleted = [image for image in old_images if image.get("url") not in new_urls]
    if deleted:
        changes.append({"type": "deleted", "count": len(deleted), "images": deleted, "urls": _urls(deleted)})

    added = [image for image in new_images if image.get("url") not in old_urls]
    if added:
        changes.append({"type": "added", "count": len(added), "images": added, "urls": _urls(added)})

    for old_image in old_images:
        new_image = next((image for image in new_images if image.get("url") == old_image.get("url")), None)
        if new_image is None:
            continue
        old_cmp = {k: v for k, v in old_image.items() if k != "cover"}
        new_cmp = {k: v for k, v in new_image.items() if k != "cover"}
        if canonical_json(old_cmp) != canonical_json(new_cmp):
            changes.append(
                {"type": "modified", "url": old_image.get("url"), "oldData": old_image, "newData": new_image}
            )

    return changes


def compare_features(old_features: Any, new_features: Any) -> list[dict]:
    old_features = [f for f in _as_list(old_features) if isinstance(f, dict)]
    new_features = [f for f in _as_list(new_features) if isinstance(f, dict)]
    old_names = {f.get("name") for f in old_features}
    new_names = {f.get("name") for f in new_features}
    changes = []

    removed = [f for f in old_features if f.get("name") not in new_names]
    if removed:
        changes.append({"type": "removed", "features": removed})

    added = [f for f in new_features if f.get("name") not in old_names]
    if added:
        changes.append({"type": "added", "features": added})

    return changes


def find_changes(old: dict, new: dict, path: str = "") -> list[dict]:
    changes: list[dict] = []
    keys = list(old.keys()) + [key for key in new.keys() if key not in old]

    for key in keys:
        field = f"{path}.{key}" if path else str(key)
        old_value = old.get(key, _MISSING)
        new_value = new.get(key, _MISSING)

        if key == "images":
            details = compare_images(old_value, new_value)
            if details:
                old_list = [i for i in _as_list(old_value) if isinstance(i, dict)]
                new_list = [i for i in _as_list(new_value) if isinstance(i, dict)]
                changes.append(
                    {
                        "field": field,
                        "type": "images_modified",
                        "details": details,
                        "oldCount": len(old_list),
                        "newCount": len(new_list),
                        "oldUrls": _urls(old_list),
                        "newUrls": _urls(new_list),
                    }
                )
            continue

        if key == "features":
            details = compare_features(old_value, new_value)
            if details:
                changes.append({"field": field, "type": "features_modified", "details": details})
            continue

        if isinstance(old_value, list) and isinstance(new_value, list):
            if canonical_json(old_value) != canonical_json(new_value):
                changes.append(
                    {
                        "field": field,
                        "type": "array_modified",
                        "oldValue": old_value,
                        "newValue": new_value,
                        "oldLength": len(old_value),
                        "newLength": len(new_value),
                    }
                )
            continue

        if isinstance(old_value, dict) and isinstance(new_value, dict):
            changes.extend(find_changes(old_value, new_value, field))
            continue

        if old_value is not _MISSING and new_value is not _MISSING and _same_scalar(old_value, new_value):
            continue

        change_type = "modified"
        if old_value is _MISSING:
            change_type = "added"
        elif new_value is _MISSING:
            change_type = "removed"

        entry = {"field": field, "type": change_type}
        if old_value is not _MISSING:
            entry["oldValue"] = old_value
        if new_value is not _MISSING:
            entry["newValue"] = new_value
        changes.append(entry)

    return changes


def compare_property_data(old_records: Iterable[dict], new_records: Iterable[dict]) -> dict:
    """Classify records as added, modified or deleted between two collections.

    Both inputs must already be normalized. Callers comparing against stored
    documents pass them through ``strip_store_fields`` first.
    """
    old_map = _index_by_id(old_records)
    new_map = _index_by_id(new_records)

    modified = []
    deleted = []
    for record_id, old_item in old_map.items():
        if record_id not in new_map:
            deleted.append({"id": record_id, "data": old_item})
            continue
        new_item = new_map[record_id]
        changes = find_changes(old_item, new_item)
        if changes:
            modified.append({"id": record_id, "changes": changes, "oldData": old_item, "newData": new_item})

    added = [{"id": record_id, "data": item} for record_id, item in new_map.items() if record_id not in old_map]

    return {
        "modified": modified,
        "deleted": deleted,
        "added": added,
        "summary": {
            "totalModified": len(modified),
            "totalDeleted": len(deleted),
            "totalAdded": len(added),
        },
    }
