"""Welcome-call tracker schemas"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel

TrackerStatus = Literal["pending", "done"]

PENDING = "pending"
DONE = "done"


class TrackerEntry(BaseModel):
    """Tracker state of one child row; immutable once status is done"""

    status: TrackerStatus
    createdAt: datetime
    lastUpdatedAt: datetime
    updatedBy: Optional[str] = None


class TrackerStatusItem(BaseModel):
    status: TrackerStatus
    timestamp: Optional[datetime] = None


class TrackerStatusUpdateRequest(BaseModel):
    """Accepts both {"id": "done"} and {"id": {"status": "done", "timestamp": ...}}"""

    trackerStatus: dict[str, Union[TrackerStatusItem, TrackerStatus]]

    def normalized(self) -> dict[str, TrackerStatusItem]:
        return {
            key: value if isinstance(value, TrackerStatusItem) else TrackerStatusItem(status=value)
            for key, value in self.trackerStatus.items()
        }


class TrackerEntryResponse(BaseModel):
    status: TrackerStatus
    createdAt: datetime
    lastUpdatedAt: datetime


class TrackerStatusResponse(BaseModel):
    trackerStatus: dict[str, TrackerEntryResponse]
    stale: bool = False
    message: str
    warning: Optional[str] = None


class TrackerUpdateResult(BaseModel):
    applied: list[str]
    skipped: list[str]
    stale: bool = False


class TrackerUpdateResponse(BaseModel):
    success: bool = True
    message: str
    applied: list[str]
    skipped: list[str]
    warning: Optional[str] = None
