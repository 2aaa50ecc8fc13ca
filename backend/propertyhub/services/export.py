from io import StringIO
import csv

from pymongo.collection import Collection

from propertyhub.services.properties import serialize_document, without_store_fields

CSV_COLUMNS = [
    "id",
    "ref",
    "date",
    "type",
    "price",
    "currency",
    "price_freq",
    "country",
    "province",
    "town",
    "location_detail",
    "postal_code",
    "beds",
    "baths",
    "surface_area",
    "pool",
    "new_build",
    "part_ownership",
    "leasehold",
    "energy_rating",
    "latitude",
    "longitude",
    "agencia",
    "email",
    "telefono",
    "url",
    "title_extra",
    "description",
    "images",
    "features",
]


def export_properties(collection: Collection) -> list[dict]:
    return [serialize_document(without_store_fields(doc)) for doc in collection.find({})]


def properties_csv(properties: list[dict]) -> str:
    out = StringIO()
    writer = csv.writer(out)
    writer.writerow(CSV_COLUMNS)

    for prop in properties:
        row = []
        for column in CSV_COLUMNS:
            value = prop.get(column)
            if column == "images":
                value = " | ".join(str(img.get("url") or "") for img in value or [] if isinstance(img, dict))
            elif column == "features":
                value = " | ".join(str(f.get("name") or "") for f in value or [] if isinstance(f, dict))
            row.append("" if value is None else value)
        writer.writerow(row)

    return out.getvalue()
