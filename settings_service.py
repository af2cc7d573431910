from db import UserSettingsRepository
from settings_schema import validate_user_settings

ACCENT_COLORS = {
    "original": "#2EF0BA",
    "darkblue": "#0B3B8C",
    "pink": "#FFB6C1",
    "bloodred": "#B20000",
    "lime": "#A4DE02",
}

THEME_COLORS = {
    "dark": {
        "bg": "#000",
        "cardBg": "#0A0A0A",
        "text": "#FFF",
        "muted": "#888",
        "border": "#222",
    },
    "light": {
        "bg": "#FFFFFF",
        "cardBg": "#F5F5F5",
        "text": "#000",
        "muted": "#666",
        "border": "#DDD",
    },
}

DEFAULT_SETTINGS = {"theme": "dark", "accent": "original", "notifications": True}


class UserSettingsService:
    """Theme, accent and notification preferences, one row per user."""

    def __init__(self, repo: UserSettingsRepository) -> None:
        self.repo = repo

    async def load(self, user_id: str) -> dict:
        """Return the user's settings, storing the defaults on first read."""
        row = await self.repo.fetch(user_id)
        if row is None:
            await self.repo.ensure(user_id, **DEFAULT_SETTINGS)
            row = await self.repo.fetch(user_id)
        # rows written by older builds may hold nulls
        merged = {k: v for k, v in row.items() if v is not None}
        return {**DEFAULT_SETTINGS, **merged}

    async def _save(self, user_id: str, **changes) -> dict:
        current = await self.load(user_id)
        data = validate_user_settings(
            {
                "theme": changes.get("theme", current["theme"]),
                "accent": changes.get("accent", current["accent"]),
                "notifications": changes.get("notifications", current["notifications"]),
            }
        )
        await self.repo.upsert(user_id, **data)
        return {"user_id": user_id, **data}

    async def update_theme(self, user_id: str, theme: str) -> dict:
        return await self._save(user_id, theme=theme)

    async def update_accent(self, user_id: str, accent: str) -> dict:
        return await self._save(user_id, accent=accent)

    async def set_notifications(self, user_id: str, enabled: bool) -> dict:
        return await self._save(user_id, notifications=enabled)

    @staticmethod
    def palette(settings: dict) -> dict:
        theme = settings.get("theme") if settings.get("theme") in THEME_COLORS else "dark"
        accent = settings.get("accent") if settings.get("accent") in ACCENT_COLORS else "original"
        return {**THEME_COLORS[theme], "accent": ACCENT_COLORS[accent]}
