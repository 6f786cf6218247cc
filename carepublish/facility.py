"""
Facility resolution for the signed-in session.

A ``FacilityContext`` is created per session with an explicit resolver and
cache. Development environments fall back to a fixed facility when
resolution fails; production surfaces the failure.
"""
import json
import threading
from pathlib import Path
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .auth import get_required_user
from .config import Settings, get_settings
from .database import get_db
from .logging_config import facility_logger
from .models.facility import Facility, UserFacility
from .models.user import User

CACHE_KEY = "currentFacility"
DEVELOPMENT_ENVIRONMENTS = ("development", "test")


class FacilityResolutionError(Exception):
    """Raised when the current facility cannot be determined."""


class FacilityRecord(BaseModel):
    id: str
    name: str
    is_fallback: bool = False


class FacilityCache:
    """JSON file of string keys to JSON values, one file per deployment."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            facility_logger.warning("Facility cache unreadable, starting empty", error=e, path=str(self.path))
            return {}

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: dict) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, default=str), encoding="utf-8")


class FacilityContext:
    """Resolves and exposes the current facility for one session."""

    def __init__(
        self,
        resolver: Callable[[], FacilityRecord],
        settings: Settings,
        cache: FacilityCache,
    ):
        self.resolver = resolver
        self.settings = settings
        self.cache = cache
        self.current_facility: Optional[FacilityRecord] = None
        self.error: Optional[str] = None
        self.is_loading = False

    @property
    def current_facility_id(self) -> Optional[str]:
        return self.current_facility.id if self.current_facility else None

    def is_development(self) -> bool:
        return (
            self.settings.environment.lower() in DEVELOPMENT_ENVIRONMENTS
            or self.settings.hostname == "localhost"
        )

    def dev_facility(self) -> FacilityRecord:
        return FacilityRecord(
            id=self.settings.dev_facility_id,
            name=self.settings.dev_facility_name,
            is_fallback=True,
        )

    def initialize(self, route: Optional[str] = None) -> Optional[FacilityRecord]:
        """Resolve the facility unless the session is on the login page."""
        if route is not None and route.rstrip("/") == self.settings.login_path.rstrip("/"):
            facility_logger.debug("Skipping facility resolution on login route", route=route)
            return None
        return self.refresh_facility()

    def refresh_facility(self) -> Optional[FacilityRecord]:
        """
        Run the full resolution sequence.

        Each call resolves independently; concurrent calls are not merged.
        """
        self.is_loading = True
        try:
            try:
                facility = self.resolver()
            except Exception as e:
                if not self.is_development():
                    facility_logger.critical("Facility resolution failed", error=e)
                    self.current_facility = None
                    self.error = f"Unable to determine current facility: {e}"
                    return None
                facility_logger.warning(
                    "Facility resolution failed, using development facility",
                    error=e,
                    facility_id=self.settings.dev_facility_id,
                )
                facility = self.dev_facility()

            self.current_facility = facility
            self.error = None
            self.cache.set(CACHE_KEY, facility.model_dump())
            facility_logger.info("Resolved current facility", facility_id=facility.id, fallback=facility.is_fallback)
            return facility
        finally:
            self.is_loading = False


def resolve_user_facility(db: Session, user: User) -> Callable[[], FacilityRecord]:
    """Build a resolver reading the user's home facility, then their first membership."""

    def resolver() -> FacilityRecord:
        facility_id = user.facility_id
        if not facility_id:
            membership = db.query(UserFacility).filter(
                UserFacility.user_id == user.id
            ).order_by(UserFacility.id).first()
            facility_id = membership.facility_id if membership else None
        if not facility_id:
            raise FacilityResolutionError(f"User {user.id} is not assigned to a facility")

        facility = db.get(Facility, facility_id)
        if facility is None:
            raise FacilityResolutionError(f"Facility {facility_id} does not exist")
        return FacilityRecord(id=facility.id, name=facility.name)

    return resolver


_cache: Optional[FacilityCache] = None


def get_facility_cache(settings: Settings = Depends(get_settings)) -> FacilityCache:
    global _cache
    if _cache is None or str(_cache.path) != str(Path(settings.facility_cache_path)):
        _cache = FacilityCache(settings.facility_cache_path)
    return _cache


def get_facility_context(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
    settings: Settings = Depends(get_settings),
    cache: FacilityCache = Depends(get_facility_cache),
) -> FacilityContext:
    """Per-request facility context for the authenticated user."""
    context = FacilityContext(resolve_user_facility(db, current_user), settings, cache)
    context.initialize(request.url.path)
    return context


def get_current_facility_id(context: FacilityContext = Depends(get_facility_context)) -> str:
    if context.current_facility_id is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=context.error or "Current facility is unavailable",
        )
    return context.current_facility_id
