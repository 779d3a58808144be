"""Service catalog schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ServiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    duration: int
    required_staff_type: str
    created_at: Optional[datetime] = None
