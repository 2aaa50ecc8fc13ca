"""Azure Translator v3 client with a conservative, per-instance rate budget."""

import logging
import math
import re
import time
from datetime import datetime, timezone
from typing import Callable

import requests

from propertyhub.core.config import Settings
from propertyhub.core.errors import TranslationError, TranslatorNotConfiguredError

logger = logging.getLogger(__name__)

MAX_REQUESTS_PER_MINUTE = 20
MIN_REQUEST_INTERVAL = 2.0
MAX_BATCH_SIZE = 3
MAX_CHARS_PER_TEXT = 3000
FAILURE_WINDOW = 300.0
MINUTE = 60.0

_WHITESPACE = re.compile(r"\s+")


def clean_text(text: str | None) -> str:
    cleaned = _WHITESPACE.sub(" ", (text or "").strip()).strip()
    if len(cleaned) > MAX_CHARS_PER_TEXT:
        return cleaned[:MAX_CHARS_PER_TEXT].strip() + "..."
    return cleaned


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class TranslatorClient:
    def __init__(
        self,
        api_key: str,
        region: str = "global",
        endpoint: str = "https://api.cognitive.microsofttranslator.com",
        api_version: str = "3.0",
        timeout: float = 30,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.api_key = api_key
        self.region = region
        self.endpoint = endpoint.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self.session = session or requests.Session()
        self.sleep = sleep
        self.clock = clock

        self.last_request_time = 0.0
        self.request_count = 0
        self.reset_time = clock() + MINUTE
        self.failure_count = 0
        self.last_failure_time = 0.0

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "TranslatorClient":
        return cls(
            api_key=settings.AZURE_TRANSLATOR_KEY,
            region=settings.AZURE_TRANSLATOR_REGION,
            endpoint=settings.AZURE_TRANSLATOR_ENDPOINT,
            api_version=settings.AZURE_TRANSLATOR_API_VERSION,
            timeout=settings.TRANSLATOR_TIMEOUT_SECONDS,
            **kwargs,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _wait(self, seconds: float, reason: str) -> None:
        if seconds <= 0:
            return
        logger.info("Translator waiting %.1fs (%s)", seconds, reason)
        self.sleep(seconds)

    def _enforce_rate_limit(self) -> None:
        now = self.clock()

        if self.failure_count > 0 and now - self.last_failure_time < FAILURE_WINDOW:
            self._wait(min(60.0, 10.0 * self.failure_count), "failure cooldown")

        if now > self.reset_time:
            self.request_count = 0
            self.reset_time = now + MINUTE
            if self.failure_count > 0:
                self.failure_count -= 1

        if self.request_count >= MAX_REQUESTS_PER_MINUTE:
            self._wait(self.reset_time - now + 5.0, "minute budget used")
            self.request_count = 0
            self.reset_time = self.clock() + MINUTE

        since_last = now - self.last_request_time
        if since_last < MIN_REQUEST_INTERVAL:
            self._wait(MIN_REQUEST_INTERVAL - since_last, "request spacing")

        self.last_request_time = self.clock()
        self.request_count += 1
        logger.debug("Translator budget: %s/%s this minute", self.request_count, MAX_REQUESTS_PER_MINUTE)

    def _record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self.clock()

    def translate_batch(self, texts: list[str], target: str = "en", source: str = "es") -> list[str]:
        if not self.configured:
            raise TranslatorNotConfiguredError("Azure Translator API key not configured")
        if not texts:
            return []

        self._enforce_rate_limit()

        processed = [clean_text(text) for text in texts[:MAX_BATCH_SIZE]]
        non_empty = [text for text in processed if text]
        if not non_empty:
            return ["" for _ in processed]

        try:
            response = self.session.post(
                f"{self.endpoint}/translate",
                params={"api-version": self.api_version, "from": source, "to": target},
                headers={
                    "Ocp-Apim-Subscription-Key": self.api_key,
                    "Ocp-Apim-Subscription-Region": self.region,
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                json=[{"text": text} for text in non_empty],
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            self._record_failure()
            logger.error("Translator request failed (failure #%s): %s", self.failure_count, exc)
            raise TranslationError(f"Translator request failed: {exc}") from exc

        if not response.ok:
            self._record_failure()
            logger.error("Translator API error %s: %s", response.status_code, response.text)
            if response.status_code == 429:
                self._wait(min(120.0, 20.0 * math.pow(1.5, self.failure_count)), "throttled by API")
            raise TranslationError(
                f"Azure API Error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json() or []
        except ValueError as exc:
            self._record_failure()
            logger.error("Translator returned an unreadable body (failure #%s): %s", self.failure_count, exc)
            raise TranslationError(f"Translator returned invalid JSON: {exc}") from exc
        if self.failure_count:
            logger.info("Translator recovered after %s failures", self.failure_count)
            self.failure_count = 0

        results = []
        data_index = 0
        for text in processed:
            if not text:
                results.append("")
                continue
            translated = text
            if data_index < len(data):
                translations = (data[data_index] or {}).get("translations") or []
                if translations and translations[0].get("text") is not None:
                    translated = translations[0]["text"]
            results.append(translated)
            data_index += 1
        return results

    def translate_text(self, text: str, target: str = "en", source: str = "es") -> str:
        if not text or not text.strip():
            return text
        result = self.translate_batch([text], target, source)
        return result[0] or text

    def rate_limit_status(self) -> dict:
        return {
            "requestCount": self.request_count,
            "maxRequests": MAX_REQUESTS_PER_MINUTE,
            "resetTime": _iso(self.reset_time),
            "failureCount": self.failure_count,
            "lastFailure": _iso(self.last_failure_time) if self.last_failure_time > 0 else None,
            "configured": self.configured,
        }


def estimate_character_count(properties: list[dict], batch_size: int = MAX_BATCH_SIZE, batch_delay: float = 8.0) -> dict:
    total_chars = 0
    description_count = 0
    for prop in properties:
        description = prop.get("description") if isinstance(prop, dict) else None
        if isinstance(description, str) and description.strip():
            total_chars += len(description)
            description_count += 1

    estimated_batches = math.ceil(description_count / batch_size) if batch_size else 0
    estimated_minutes = math.ceil(estimated_batches * batch_delay / 60)
    return {
        "totalCharacters": total_chars,
        "descriptionCount": description_count,
        "avgCharsPerDescription": round(total_chars / description_count) if description_count else 0,
        "estimatedBatches": estimated_batches,
        "estimatedTime": f"{estimated_minutes} minutes",
        "warningMessage": "This will take over 1 hour" if estimated_minutes > 60 else None,
        "settings": f"{batch_size} per batch, {batch_delay:g}s delay",
        "estimatedCost": f"${total_chars / 1_000_000 * 10:.2f}" if total_chars > 2_000_000 else "FREE",
    }
