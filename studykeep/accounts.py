"""
Accounts: registration, login and logout.

An account is the owner's ``profile`` record; the owner ID is derived
from the email, so there is no separate account index.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .errors import AccountExists, InvalidCredentials, InvalidInput, NotFound
from .record_store import RecordStore
from .records import Profile, load_model, save_model, update_model
from .sessions import SessionRegistry
from .types import LoginResult, format_utc, owner_id_for, parse_utc_timestamp

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def next_streak(current: int, last_login: Optional[datetime], now: datetime) -> int:
    """Daily login streak: same day keeps it, next day extends it, a gap resets it."""
    if last_login is None:
        return 1
    days = (now.date() - last_login.astimezone(timezone.utc).date()).days
    if days == 1:
        return current + 1
    if days > 1:
        return 1
    return current


class AccountService:
    def __init__(
        self,
        store: RecordStore,
        sessions: SessionRegistry,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._store = store
        self._sessions = sessions
        self._clock = clock

    def register(self, email: str, password: str, username: str) -> str:
        """
        Create an account. Returns the owner ID.

        Raises:
            InvalidInput: A field is missing
            AccountExists: The email is already registered
        """
        if not email or not email.strip() or not password or not username:
            raise InvalidInput("email, password and username are required")
        owner = owner_id_for(email)

        with self._store.lock(owner, Profile.RECORD_NAME):
            existing = load_model(self._store, owner, Profile)
            if existing.email:
                raise AccountExists("User already exists")
            profile = Profile.default(owner)
            profile.email = email.strip()
            profile.username = username
            profile.password = hash_password(password)
            profile.created_at = format_utc(self._clock())
            save_model(self._store, owner, profile)

        logger.info("Registered %s", owner)
        return owner

    def login(self, email: str, password: str) -> LoginResult:
        """
        Check credentials, update the streak and issue a session.

        Raises:
            InvalidInput: A field is missing
            NotFound: No account for this email
            InvalidCredentials: Wrong password
        """
        if not email or not password:
            raise InvalidInput("email and password are required")
        owner = owner_id_for(email)
        if load_model(self._store, owner, Profile).email == "":
            raise NotFound("User not found")

        now = self._clock()

        def check_and_touch(profile: Profile) -> Profile:
            if not profile.password or profile.password != hash_password(password):
                raise InvalidCredentials("Invalid password")
            last = parse_utc_timestamp(profile.last_login) if profile.last_login else None
            profile.preferences.study_streak = next_streak(
                profile.preferences.study_streak, last, now,
            )
            profile.last_login = format_utc(now)
            return profile.model_copy(deep=True)

        profile = update_model(self._store, owner, Profile, check_and_touch)
        token = self._sessions.issue(owner, email=profile.email, username=profile.username)
        logger.info("Login %s (streak %d)", owner, profile.preferences.study_streak)
        return LoginResult(
            token=token,
            owner=owner,
            username=profile.username,
            preferences=profile.preferences.to_json(),
            analytics=profile.analytics.to_json(),
        )

    def logout(self, token: str) -> bool:
        return self._sessions.revoke(token)
