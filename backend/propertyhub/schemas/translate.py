from typing import Any, Literal

from pydantic import BaseModel, Field


class TranslateTextRequest(BaseModel):
    text: str = Field(min_length=1)
    targetLang: str = "en"
    sourceLang: str = "es"


class TranslateBatchRequest(BaseModel):
    texts: list[str]
    targetLang: str = "en"
    sourceLang: str = "es"


class TranslatePropertiesRequest(BaseModel):
    properties: list[dict[str, Any]]
    targetLang: str = "en"
    sourceLang: str = "es"
    translateMode: Literal["all", "limit"] = "limit"
    translateLimit: int | None = None


class EstimateRequest(BaseModel):
    properties: list[dict[str, Any]]
