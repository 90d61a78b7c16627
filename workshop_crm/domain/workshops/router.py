"""Workshop router - FastAPI endpoints for workshops"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...database import get_db
from .schemas import (
    WorkshopCreate,
    WorkshopCreateResponse,
    WorkshopListResponse,
    WorkshopThemesResponse,
)
from .service import WorkshopService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Workshops"])


def get_workshop_service(request: Request, db: Session = Depends(get_db)) -> WorkshopService:
    """Dependency injection for WorkshopService"""
    return WorkshopService(
        db,
        theme_cache=request.app.state.theme_cache,
        shared_cache=request.app.state.shared_cache,
    )


@router.get("/workshops", response_model=WorkshopListResponse)
async def list_workshops(service: WorkshopService = Depends(get_workshop_service)):
    """Get all workshops (sample data when none are available)"""
    return service.list_workshops()


@router.post("/workshops", response_model=WorkshopCreateResponse, status_code=201)
async def create_workshop(
    data: WorkshopCreate,
    _claims: dict = Depends(require_roles("admin")),
    service: WorkshopService = Depends(get_workshop_service),
):
    return service.create_workshop(data)


@router.get("/workshop-themes", response_model=WorkshopThemesResponse)
async def get_workshop_themes(
    ids: Optional[str] = Query(None),
    _claims: dict = Depends(require_roles("admin", "staff")),
    service: WorkshopService = Depends(get_workshop_service),
):
    """Map workshop ids to themes; ids seen within the last hour come from cache"""
    return service.get_themes(ids)
