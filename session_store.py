import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional

import keyring
from keyring.errors import PasswordDeleteError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserSession:
    """Identity handed out by a successful login. Never carries the password hash."""

    id: str
    username: str

    def to_dict(self) -> dict:
        return asdict(self)


class SessionStore:
    """Persist the signed-in user in the system keyring under a fixed key."""

    KEY = "user"

    def __init__(self, service: str = "prvault") -> None:
        self.service = service

    def save(self, session: UserSession) -> None:
        keyring.set_password(self.service, self.KEY, json.dumps(session.to_dict()))

    def load(self) -> Optional[UserSession]:
        raw = keyring.get_password(self.service, self.KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return UserSession(id=str(data["id"]), username=str(data["username"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("ignoring unreadable stored session")
            return None

    def clear(self) -> None:
        try:
            keyring.delete_password(self.service, self.KEY)
        except PasswordDeleteError:
            pass
