"""Workshop service - workshop listing, creation and theme lookup"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...cache import Cache, TTLCache
from ...config import WORKSHOP_THEME_CACHE_TTL
from ...errors import StoreUnavailableError, ValidationError
from .repository import WorkshopRepository
from .schemas import (
    WorkshopCreate,
    WorkshopCreateResponse,
    WorkshopListResponse,
    WorkshopThemesResponse,
)

logger = logging.getLogger(__name__)

THEME_KEY_PREFIX = "workshop_theme"


def get_sample_workshops() -> list[dict]:
    """Sample workshop data shown when the collection is empty or unreachable"""
    return [
        {
            "_id": "1",
            "theme": "Smart City Vehicles",
            "date_of_workshop": "2023-11-15",
            "duration": 120,
            "rate": 1200,
            "children_enrolled": 24,
            "location": {"address": "123 Tech Hub", "city": "Mumbai", "country": "India"},
            "kit_name": "Smart City Kit",
            "date": {"time_slots": ["10:00 AM - 12:00 PM", "2:00 PM - 4:00 PM"], "list_datetime": "2023-11-15T10:00:00"},
        },
        {
            "_id": "2",
            "theme": "Robotics Basics",
            "date_of_workshop": "2023-11-22",
            "duration": 180,
            "rate": 1500,
            "children_enrolled": 18,
            "location": {"address": "456 Tech Park", "city": "Bangalore", "country": "India"},
            "kit_name": "Beginner Robotics Kit",
            "date": {"time_slots": ["9:00 AM - 12:00 PM"], "list_datetime": "2023-11-22T09:00:00"},
        },
        {
            "_id": "3",
            "theme": "Coding for Kids",
            "date_of_workshop": "2023-12-05",
            "duration": 150,
            "rate": 1100,
            "children_enrolled": 15,
            "location": {"address": "789 Education Center", "city": "Delhi", "country": "India"},
            "kit_name": "Coding Starter Kit",
            "date": {"time_slots": ["1:00 PM - 3:30 PM"], "list_datetime": "2023-12-05T13:00:00"},
        },
    ]


class WorkshopService:
    """Service layer for workshops"""

    def __init__(
        self,
        db: Session,
        theme_cache: Optional[TTLCache] = None,
        shared_cache: Optional[Cache] = None,
    ):
        self.db = db
        self.repo = WorkshopRepository()
        self.theme_cache = theme_cache
        self.shared_cache = shared_cache

    def list_workshops(self) -> WorkshopListResponse:
        try:
            workshops = self.repo.list_workshops(self.db)
        except SQLAlchemyError as e:
            logger.error(f"❌ Database operation error fetching workshops: {e}")
            return WorkshopListResponse(workshops=get_sample_workshops(), isUsingFallbackData=True)

        if not workshops:
            logger.info("ℹ️ No workshops found in database, using sample data")
            return WorkshopListResponse(workshops=get_sample_workshops(), isUsingFallbackData=True)

        logger.info(f"✅ Fetched {len(workshops)} workshops")
        return WorkshopListResponse(workshops=workshops)

    def create_workshop(self, data: WorkshopCreate) -> WorkshopCreateResponse:
        try:
            row = self.repo.create_workshop(self.db, data.model_dump(mode="json"))
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error adding workshop: {e}")
            raise StoreUnavailableError("Failed to add workshop") from e

        logger.info(f"✅ Successfully added new workshop with ID: {row.id}")
        return WorkshopCreateResponse(message="Workshop added successfully", workshopId=row.id)

    def _cached_theme(self, workshop_id: str) -> Optional[str]:
        theme = self.theme_cache.get(workshop_id) if self.theme_cache is not None else None
        if theme is None and self.shared_cache is not None:
            theme = self.shared_cache.get(f"{THEME_KEY_PREFIX}:{workshop_id}")
            if theme is not None and self.theme_cache is not None:
                self.theme_cache.set(workshop_id, theme)
        return theme

    def _remember_theme(self, workshop_id: str, theme: str) -> None:
        if self.theme_cache is not None:
            self.theme_cache.set(workshop_id, theme)
        if self.shared_cache is not None:
            self.shared_cache.set(f"{THEME_KEY_PREFIX}:{workshop_id}", theme, ttl=WORKSHOP_THEME_CACHE_TTL)

    def get_themes(self, ids_param: Optional[str]) -> WorkshopThemesResponse:
        """
        Resolve a comma-separated id list to themes.

        Ids still fresh in the cache are not queried; unknown ids are omitted.
        """
        if not ids_param:
            raise ValidationError("Workshop IDs are required")

        workshop_ids = list(dict.fromkeys(i.strip() for i in ids_param.split(",") if i.strip()))
        if not workshop_ids:
            raise ValidationError("Workshop IDs are required")

        themes: dict[str, str] = {}
        misses: list[str] = []
        for workshop_id in workshop_ids:
            theme = self._cached_theme(workshop_id)
            if theme is None:
                misses.append(workshop_id)
            else:
                themes[workshop_id] = theme

        cached = len(workshop_ids) - len(misses)
        if not misses:
            return WorkshopThemesResponse(themes=themes, cached=cached, fetched=0)

        try:
            fetched = self.repo.get_themes(self.db, misses)
        except SQLAlchemyError as e:
            logger.error(f"❌ Error querying workshop themes: {e}")
            return self._stale_themes(themes, misses, cached, e)

        for workshop_id, theme in fetched.items():
            themes[workshop_id] = theme
            self._remember_theme(workshop_id, theme)

        logger.debug(f"📊 Workshop themes: {cached} cached, {len(misses)} fetched")
        return WorkshopThemesResponse(themes=themes, cached=cached, fetched=len(misses))

    def _stale_themes(
        self, themes: dict[str, str], misses: list[str], cached: int, error: Exception
    ) -> WorkshopThemesResponse:
        """Serve expired cache entries for the ids the store could not resolve"""
        stale = 0
        if self.theme_cache is not None:
            for workshop_id in misses:
                theme = self.theme_cache.get_stale(workshop_id)
                if theme is not None:
                    themes[workshop_id] = theme
                    stale += 1

        if not themes:
            raise StoreUnavailableError("Failed to fetch workshop themes") from error

        logger.warning(f"⚠️ Serving {stale} stale and {cached} cached workshop themes; {len(misses) - stale} unresolved")
        return WorkshopThemesResponse(
            themes=themes,
            cached=cached,
            fetched=0,
            stale=True,
            warning="Database connection failed; some themes may be outdated or missing",
        )
