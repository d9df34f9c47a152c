import logging
from typing import Optional

from pydantic import ValidationError

from .endpoint import APIBase
from .fetcher import Fetcher
from .storage import ClientStorage
from .types import Session, User

logger = logging.getLogger(__name__)

SESSION_KEY = "agnost.session"
USER_KEY = "agnost.user"


class AuthManager(APIBase):
    """
    Keeps the signed-in user and session in the client storage.

    Sign-in flows happen elsewhere; once they produce a session, hand it to
    ``set_session`` so HTTP requests and realtime connections carry it.
    """

    def __init__(self, fetcher: Fetcher, storage: ClientStorage) -> None:
        super().__init__(fetcher)
        self._storage = storage
        self.fetcher.set_session(self.get_session())

    def get_session(self) -> Optional[Session]:
        raw = self._storage.get_item(SESSION_KEY)
        if raw is None:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable stored session: {e}")
            self._storage.remove_item(SESSION_KEY)
            return None

    def current_session(self) -> Optional[Session]:
        return self.get_session()

    def set_session(self, session: Optional[Session]) -> None:
        if session is None:
            self._storage.remove_item(SESSION_KEY)
        else:
            self._storage.set_item(SESSION_KEY, session.model_dump_json(by_alias=True))
        self.fetcher.set_session(session)

    def get_user(self) -> Optional[User]:
        raw = self._storage.get_item(USER_KEY)
        if raw is None:
            return None
        try:
            return User.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable stored user: {e}")
            self._storage.remove_item(USER_KEY)
            return None

    def set_user(self, user: Optional[User]) -> None:
        if user is None:
            self._storage.remove_item(USER_KEY)
        else:
            self._storage.set_item(USER_KEY, user.model_dump_json(by_alias=True))

    def clear(self) -> None:
        self.set_session(None)
        self.set_user(None)
