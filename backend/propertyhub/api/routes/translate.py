import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from propertyhub.core.config import get_settings
from propertyhub.core.deps import get_translator, require_admin
from propertyhub.core.errors import TranslationError, TranslatorNotConfiguredError
from propertyhub.models.user import User
from propertyhub.schemas.translate import (
    EstimateRequest,
    TranslateBatchRequest,
    TranslatePropertiesRequest,
    TranslateTextRequest,
)
from propertyhub.services.translation import translate_properties
from propertyhub.services.translator import TranslatorClient, estimate_character_count

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/translate", tags=["translate"])

SERVICE_NAME = "Azure Translator"


def _translation_failed(message: str, exc: TranslationError) -> HTTPException:
    if isinstance(exc, TranslatorNotConfiguredError):
        return HTTPException(status_code=503, detail={"success": False, "error": str(exc)})
    return HTTPException(status_code=500, detail={"success": False, "error": message, "message": str(exc)})


@router.post("/single")
def translate_single(
    payload: TranslateTextRequest,
    translator: TranslatorClient = Depends(get_translator),
    _: User = Depends(require_admin),
):
    try:
        translated = translator.translate_text(payload.text, payload.targetLang, payload.sourceLang)
    except TranslationError as exc:
        raise _translation_failed("Translation failed", exc)
    return {
        "success": True,
        "data": {
            "originalText": payload.text,
            "translatedText": translated,
            "sourceLang": payload.sourceLang,
            "targetLang": payload.targetLang,
            "service": SERVICE_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.post("/batch")
def translate_batch(
    payload: TranslateBatchRequest,
    translator: TranslatorClient = Depends(get_translator),
    _: User = Depends(require_admin),
):
    try:
        translated = translator.translate_batch(payload.texts, payload.targetLang, payload.sourceLang)
    except TranslationError as exc:
        raise _translation_failed("Batch translation failed", exc)
    return {
        "success": True,
        "data": {
            "originalTexts": payload.texts,
            "translatedTexts": translated,
            "sourceLang": payload.sourceLang,
            "targetLang": payload.targetLang,
            "count": len(payload.texts),
            "service": SERVICE_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.post("/properties")
def translate_property_descriptions(
    payload: TranslatePropertiesRequest,
    translator: TranslatorClient = Depends(get_translator),
    current_user: User = Depends(require_admin),
):
    settings = get_settings()
    limit = payload.translateLimit if payload.translateLimit is not None else settings.TRANSLATE_LIMIT_DEFAULT
    logger.info("Property translation of %s records requested by %s", len(payload.properties), current_user.email)
    try:
        result = translate_properties(
            translator,
            payload.properties,
            target=payload.targetLang,
            source=payload.sourceLang,
            translate_mode=payload.translateMode,
            translate_limit=limit,
            batch_size=settings.TRANSLATE_BATCH_SIZE,
            batch_delay=settings.TRANSLATE_BATCH_DELAY_SECONDS,
            initial_cooldown=settings.TRANSLATE_INITIAL_COOLDOWN_SECONDS,
            max_retries=settings.TRANSLATE_MAX_RETRIES,
        )
    except TranslationError as exc:
        raise _translation_failed("Properties translation failed", exc)
    return {"success": True, "data": result}


@router.post("/estimate")
def estimate(payload: EstimateRequest, _: User = Depends(require_admin)):
    settings = get_settings()
    return {
        "success": True,
        "data": estimate_character_count(
            payload.properties,
            batch_size=settings.TRANSLATE_BATCH_SIZE,
            batch_delay=settings.TRANSLATE_BATCH_DELAY_SECONDS,
        ),
    }


@router.get("/status")
def status(translator: TranslatorClient = Depends(get_translator), _: User = Depends(require_admin)):
    return {"success": True, "data": translator.rate_limit_status()}
