"""Object store listing model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class StoredObject(BaseModel):
    """An object held by the remote store, with store-assigned attributes."""

    model_config = ConfigDict(frozen=True)

    key: str
    created_at: datetime
    size: int = 0
