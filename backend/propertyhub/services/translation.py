import logging
import math
import time
from datetime import datetime, timezone
from typing import Callable

from propertyhub.core.errors import TranslationError, TranslatorNotConfiguredError
from propertyhub.services.translator import MAX_BATCH_SIZE, TranslatorClient

logger = logging.getLogger(__name__)

SKIPPED_BATCH_COOLDOWN = 30.0


def retry_delay(error: TranslationError, attempt: int) -> float:
    if error.is_rate_limited:
        return min(240.0, 15.0 * 2 ** (attempt - 1))
    return 5.0 * attempt


def is_limited(translate_mode: str, translate_limit: int | None) -> bool:
    return translate_mode == "limit" and bool(translate_limit) and translate_limit > 0


def processing_length(total: int, translate_mode: str, translate_limit: int | None) -> int:
    if is_limited(translate_mode, translate_limit):
        return min(translate_limit, total)
    return total


def translate_properties(
    translator: TranslatorClient,
    properties: list[dict],
    target: str = "en",
    source: str = "es",
    translate_mode: str = "limit",
    translate_limit: int | None = None,
    batch_size: int = 3,
    batch_delay: float = 8.0,
    initial_cooldown: float = 10.0,
    max_retries: int = 5,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> dict:
    """Translate ``description`` fields batch by batch.

    Every input record is returned; only the first ``processed`` records are
    touched. A batch that still fails after ``max_retries`` attempts is
    skipped and the run continues.
    """
    if not translator.configured:
        raise TranslatorNotConfiguredError("Azure Translator API key not configured")

    batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))

    started = clock()
    processed = processing_length(len(properties), translate_mode, translate_limit)
    results = [dict(p) if isinstance(p, dict) else p for p in properties]
    translated = 0
    skipped = 0
    total_batches = math.ceil(processed / batch_size) if batch_size else 0

    logger.info(
        "Translating %s/%s properties %s->%s in %s batches",
        processed,
        len(properties),
        source,
        target,
        total_batches,
    )
    sleep(initial_cooldown)

    for batch_start in range(0, processed, batch_size):
        batch_end = min(batch_start + batch_size, processed)
        batch_number = batch_start // batch_size + 1
        batch_success = False

        texts: list[str] = []
        indices: list[int] = []
        for index in range(batch_start, batch_end):
            record = results[index]
            description = record.get("description") if isinstance(record, dict) else None
            if description and str(description).strip():
                texts.append(str(description))
                indices.append(index)

        if not texts:
            logger.debug("Batch %s/%s has no descriptions", batch_number, total_batches)

        attempt = 0
        while texts and attempt < max_retries and not batch_success:
            try:
                translated_texts = translator.translate_batch(texts, target, source)
            except TranslatorNotConfiguredError:
                raise
            except TranslationError as exc:
                attempt += 1
                logger.warning("Batch %s attempt %s failed: %s", batch_number, attempt, exc)
                sleep(retry_delay(exc, attempt))
                if attempt >= max_retries:
                    logger.error("Batch %s skipped after %s attempts", batch_number, attempt)
                    skipped += len(texts)
                    sleep(SKIPPED_BATCH_COOLDOWN)
                continue

            translated_at = datetime.now(timezone.utc).isoformat()
            for index, text in zip(indices, translated_texts):
                results[index] = {
                    **results[index],
                    "description": text,
                    "isTranslated": True,
                    "translatedAt": translated_at,
                    "targetLang": target,
                }
                translated += 1
            batch_success = True

        if batch_end < processed and batch_success:
            sleep(batch_delay)

    duration = clock() - started
    success_rate = f"{translated / processed * 100:.1f}%" if processed else "0.0%"
    stats = {
        "total": len(properties),
        "processed": processed,
        "translated": translated,
        "skipped": skipped,
        "noDescription": processed - translated - skipped,
        "successRate": success_rate,
        "duration": f"{math.ceil(duration / 60)} minutes",
        "avgTimePerProcessed": f"{duration / processed:.1f}s" if processed else "0s",
        "targetLang": target,
        "sourceLang": source,
        "batchSize": batch_size,
        "delayBetweenBatches": f"{batch_delay:g}s",
        "translateMode": translate_mode,
        "translateLimit": processed if is_limited(translate_mode, translate_limit) else None,
    }
    logger.info("Translation finished: %s translated, %s skipped", translated, skipped)
    return {"properties": results, "stats": stats}
