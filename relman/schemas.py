from __future__ import annotations

from pydantic import BaseModel, Field, NonNegativeInt


class ScaleRequest(BaseModel):
    quantities: dict[str, NonNegativeInt] = Field(..., description="process type -> desired quantity")
