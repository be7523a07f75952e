"""Service for user accounts and login sessions."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

from facility_booking.domain.errors import (
    AuthenticationError,
    NotFoundError,
    PermissionDenied,
    UsernameTaken,
)
from facility_booking.domain.models import Session, User, UserCreate, UserUpdate
from facility_booking.repos.memory import UserRepository
from facility_booking.security import get_password_hash, new_session_token, verify_password

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_admin(session: Session) -> None:
    if not session.user.is_admin:
        raise PermissionDenied("Administrator role required")


class SessionManager:
    """Issues, resolves and invalidates login sessions.

    Sessions live only in this object; logging out or expiry removes them.
    The session table is shared by request threads and guarded by a lock.
    """

    def __init__(
        self,
        user_repo: UserRepository,
        ttl: timedelta = timedelta(minutes=480),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.user_repo = user_repo
        self.ttl = ttl
        self.clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def login(self, username: str, password: str) -> Session:
        user = self.user_repo.get_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login for username %r", username)
            raise AuthenticationError("Invalid username or password")

        now = self.clock()
        session = Session(
            token=new_session_token(),
            user=user,
            issued_at=now,
            expires_at=now + self.ttl,
        )
        with self._lock:
            self._sessions[session.token] = session
        logger.info("User %s logged in", user.username)
        return session

    def logout(self, token: str) -> None:
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is not None:
            logger.info("User %s logged out", session.user.username)

    def resolve(self, token: str) -> Session:
        """Return the live session for *token*, refreshed with the stored user."""
        with self._lock:
            session = self._sessions.get(token)
        if session is None:
            raise AuthenticationError("Not logged in")
        if session.is_expired(self.clock()):
            self._discard(token)
            raise AuthenticationError("Session expired")

        user = self.user_repo.get(session.user.id)
        if user is None:
            self._discard(token)
            raise AuthenticationError("Account no longer exists")
        return session.model_copy(update={"user": user})

    def drop_user_sessions(self, user_id: str) -> None:
        with self._lock:
            for token in [t for t, s in self._sessions.items() if s.user.id == user_id]:
                del self._sessions[token]

    def _discard(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)


class AccountService:
    """User account management. All writes except self-service profile edits are admin-only."""

    def __init__(self, user_repo: UserRepository, sessions: SessionManager) -> None:
        self.user_repo = user_repo
        self.sessions = sessions

    def list_users(self, session: Session) -> list[User]:
        require_admin(session)
        return self.user_repo.list_all()

    def get_user(self, session: Session, user_id: str) -> User:
        if not session.user.is_admin and session.user.id != user_id:
            raise PermissionDenied("Cannot view another user's account")
        return self._require(user_id)

    def create_user(self, session: Session, data: UserCreate) -> User:
        require_admin(session)
        if self.user_repo.get_by_username(data.username) is not None:
            raise UsernameTaken(data.username)

        user = User(
            full_name=data.full_name,
            username=data.username,
            email=data.email,
            role=data.role,
            password_hash=get_password_hash(data.password),
        )
        self.user_repo.add(user)
        logger.info("Account %s created by %s", user.username, session.user.username)
        return user

    def update_user(self, session: Session, user_id: str, data: UserUpdate) -> User:
        """Replace profile fields; the password is kept when none is given."""
        is_self = session.user.id == user_id
        if not session.user.is_admin and not is_self:
            raise PermissionDenied("Cannot edit another user's account")

        user = self._require(user_id)
        changes: dict = {"full_name": data.full_name, "email": data.email}
        if data.role is not None and data.role != user.role:
            if not session.user.is_admin:
                raise PermissionDenied("Only administrators can change roles")
            changes["role"] = data.role
        if data.password:
            changes["password_hash"] = get_password_hash(data.password)

        updated = self.user_repo.update(user.model_copy(update=changes))
        logger.info("Account %s updated by %s", updated.username, session.user.username)
        return updated

    def delete_user(self, session: Session, user_id: str) -> None:
        require_admin(session)
        user = self._require(user_id)
        self.user_repo.delete(user_id)
        self.sessions.drop_user_sessions(user_id)
        logger.info("Account %s deleted by %s", user.username, session.user.username)

    def _require(self, user_id: str) -> User:
        user = self.user_repo.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user
