import logging
from typing import Optional

from account_service import AccountService
from algorithms import ProgramGenerator
from config import YamlConfig, configure_logging
from db import (
    BodyWeightRepository,
    Database,
    UserRepository,
    UserSettingsRepository,
    UserStatsRepository,
    WorkoutLogRepository,
    WorkoutRepository,
    WorkoutSetRepository,
)
from errors import InvalidCredentials, NotFound
from metrics_service import MetricsService
from profile_service import ProfileService
from session_service import WorkoutSessionService
from session_store import SessionStore, UserSession
from settings_service import UserSettingsService
from workout_service import WorkoutHistoryService, WorkoutTemplateService

logger = logging.getLogger(__name__)


class AppContext:
    """Services and the signed-in user, handed to each screen explicitly."""

    def __init__(
        self,
        db: Database,
        config: dict,
        session_store: Optional[SessionStore] = None,
    ) -> None:
        self.db = db
        self.config = config
        self.session_store = session_store
        self.user: Optional[UserSession] = None

        users = UserRepository(db)
        stats = UserStatsRepository(db)
        body_weights = BodyWeightRepository(db)
        workouts = WorkoutRepository(db)
        logs = WorkoutLogRepository(db)
        sets = WorkoutSetRepository(db)

        self.accounts = AccountService(users)
        self.profile = ProfileService(stats, body_weights, config["recent_bodyweight_limit"])
        self.workouts = WorkoutTemplateService(workouts)
        self.history = WorkoutHistoryService(logs, sets)
        self.sessions = WorkoutSessionService(workouts, logs)
        self.settings = UserSettingsService(UserSettingsRepository(db))
        self.metrics = MetricsService(
            stats,
            body_weights,
            sets,
            streak_max_days=config["streak_max_days"],
            recent_limit=config["recent_bodyweight_limit"],
        )
        self.programs = ProgramGenerator(config["plate_increment"])

    def require_user(self) -> UserSession:
        if self.user is None:
            raise InvalidCredentials("not signed in")
        return self.user

    async def login(self, username: str, password: str) -> UserSession:
        self.user = await self.accounts.login(username, password)
        if self.session_store is not None:
            self.session_store.save(self.user)
        return self.user

    def logout(self) -> None:
        self.user = None
        if self.session_store is not None:
            self.session_store.clear()

    async def delete_account(self) -> None:
        user = self.require_user()
        await self.accounts.delete_account(user.id)
        self.logout()

    async def restore_session(self) -> Optional[UserSession]:
        """Adopt the persisted session if its user still exists."""
        if self.session_store is None:
            return None
        saved = self.session_store.load()
        if saved is None:
            return None
        try:
            await self.accounts.users.fetch_detail(saved.id)
        except NotFound:
            logger.warning("stored session for %s has no account; discarding", saved.username)
            self.session_store.clear()
            return None
        self.user = saved
        return saved


async def bootstrap(
    config_path: str = "settings.yaml",
    session_store: Optional[SessionStore] = None,
) -> AppContext:
    """Load config, open the store and restore any saved session.

    A store that cannot be initialized raises and the app must not start.
    """
    config = YamlConfig(config_path).load()
    configure_logging(config["log_level"])
    db = Database(config["db_path"])
    await db.initialize()
    if session_store is None:
        session_store = SessionStore(config["keyring_service"])
    ctx = AppContext(db, config, session_store)
    await ctx.restore_session()
    return ctx
