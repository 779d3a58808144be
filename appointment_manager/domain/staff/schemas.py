"""Staff directory schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class StaffResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    service_type: str
    daily_capacity: int
    status: str
    created_at: Optional[datetime] = None
    # Only filled in when the listing is requested for a specific date
    appointment_count: Optional[int] = None
