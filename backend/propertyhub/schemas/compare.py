from typing import Any

from pydantic import BaseModel


class CompareRequest(BaseModel):
    oldData: list[dict[str, Any]]
    newData: list[dict[str, Any]]


class CompareDatabaseRequest(BaseModel):
    jsonData: list[dict[str, Any]]
