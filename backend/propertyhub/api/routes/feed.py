from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from propertyhub.core.config import get_settings
from propertyhub.core.errors import FeedError
from propertyhub.services.feed import fetch_xml_feed

router = APIRouter(tags=["feed"])

FEED_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET",
    "Access-Control-Allow-Headers": "Content-Type",
}


@router.get("/xml-feed")
def xml_feed():
    settings = get_settings()
    if not settings.XML_FEED_URL:
        raise HTTPException(status_code=503, detail="XML feed is not configured")
    try:
        body = fetch_xml_feed(settings.XML_FEED_URL, timeout=settings.XML_FEED_TIMEOUT_SECONDS)
    except FeedError as exc:
        raise HTTPException(
            status_code=500,
            detail={"message": "Error fetching data from the XML feed", "error": str(exc)},
        )
    return Response(content=body, media_type="application/xml", headers=FEED_CORS_HEADERS)
