from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Any, Dict


class AssociationRequest(BaseModel):
    home_id: str = Field(min_length=1)
    room_id: str = Field(min_length=1)
    light_id: str = Field(min_length=1)


class SettingsUpdateRequest(BaseModel):
    updates: Dict[str, Any]
