"""
Favorite styles setting
Persisted as JSON text on the single user_settings row
"""
import json
import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import sessionmaker

from catalog.models import UserSettings

logger = logging.getLogger("favorites")

SETTINGS_ROW_ID = 1


def _parse_favorites(raw: Optional[str]) -> List[str]:
    """Decode stored favorites; anything malformed reads as no favorites."""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError as e:
        logger.warning(f"Failed to parse favorite styles: {e}")
        return []
    if not isinstance(parsed, list):
        logger.warning("Favorite styles setting is not a list, ignoring")
        return []
    return [name for name in parsed if isinstance(name, str)]


class FavoritesStore:
    """SQLAlchemy-backed favorites."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_favorite_styles(self) -> List[str]:
        session = self._session_factory()
        try:
            row = session.get(UserSettings, SETTINGS_ROW_ID)
            return _parse_favorites(row.favorite_styles if row else None)
        finally:
            session.close()

    def set_favorite_styles(self, names: Sequence[str]) -> List[str]:
        names = list(names)
        session = self._session_factory()
        try:
            row = session.get(UserSettings, SETTINGS_ROW_ID)
            if row is None:
                row = UserSettings(id=SETTINGS_ROW_ID)
                session.add(row)
            row.favorite_styles = json.dumps(names)
            session.commit()
        finally:
            session.close()
        return names


class MemoryFavoritesStore:
    """In-memory favorites for non-persistent deployments and tests."""

    def __init__(self, raw: Optional[str] = None):
        self._raw = raw

    def get_favorite_styles(self) -> List[str]:
        return _parse_favorites(self._raw)

    def set_favorite_styles(self, names: Sequence[str]) -> List[str]:
        names = list(names)
        self._raw = json.dumps(names)
        return names
