"""Workshop domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class DescriptionItem(BaseModel):
    type: Literal["paragraph", "list"]
    content: str
    subpoints: Optional[list[str]] = None


class WorkshopLocation(BaseModel):
    address: str
    city: str
    country: str


class WorkshopSchedule(BaseModel):
    time_slots: list[str]
    list_datetime: datetime


class WorkshopCreate(BaseModel):
    """Schema for adding a workshop"""

    theme: str
    date: WorkshopSchedule
    date_of_workshop: str
    duration: int = Field(gt=0)
    rate: float = Field(ge=0)
    video_url: str
    description: list[DescriptionItem] = []
    location: WorkshopLocation
    likes: int = 0
    rating: float = 0
    children_enrolled: int = 0
    kit_name: str
    meta: str
    workshop_url: str

    @field_validator("theme")
    @classmethod
    def validate_theme(cls, v):
        if not v.strip():
            raise ValueError("theme is required")
        return v.strip()


class WorkshopListResponse(BaseModel):
    success: bool = True
    workshops: list[dict]
    isUsingFallbackData: bool = False


class WorkshopCreateResponse(BaseModel):
    success: bool = True
    message: str
    workshopId: str


class WorkshopThemesResponse(BaseModel):
    success: bool = True
    themes: dict[str, str]
    cached: int
    fetched: int
    stale: bool = False
    warning: Optional[str] = None
