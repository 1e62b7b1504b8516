from __future__ import annotations

from pydantic import BaseModel


class BaseReadModel(BaseModel):
    model_config = {"from_attributes": True}


class LatLonRead(BaseReadModel):
    lat: float
    lon: float
