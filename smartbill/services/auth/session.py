"""
Local Session

Keeps the signed-in user's identity in the key/value store. There is no
real authentication behind it: login simply records who is using the
app on this device.
"""

from enum import Enum
from typing import Any, Optional
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from smartbill.services.storage import CorruptValueError, KeyValueStore, StorageKeys

logger = structlog.get_logger(__name__)

_PROFILE_FIELDS = {"nickname", "avatar", "phone"}


class LoginMethod(str, Enum):
    WECHAT = "wechat"
    PHONE = "phone"


class UserIdentity(BaseModel):
    """The signed-in user."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    nickname: str = Field(..., min_length=1, max_length=50)
    avatar: Optional[str] = None
    phone: Optional[str] = None
    is_logged_in: bool = Field(default=True, alias="isLoggedIn")
    login_method: LoginMethod = Field(..., alias="loginMethod")


class SessionManager:
    """
    Login state for this device.

    Usage:
        sessions = SessionManager(store)
        user = sessions.login("小明", LoginMethod.WECHAT)
    """

    def __init__(self, store: KeyValueStore, key: str = StorageKeys.USER_SESSION):
        self._store = store
        self._key = key

    def current(self) -> Optional[UserIdentity]:
        """The stored user, or None when signed out or the record is unreadable."""
        try:
            data = self._store.get_json(self._key)
        except CorruptValueError as e:
            logger.warning("session_corrupt", error=str(e))
            return None
        if not isinstance(data, dict):
            return None
        try:
            return UserIdentity.model_validate(data)
        except ValidationError as e:
            logger.warning("session_corrupt", error=str(e))
            return None

    @property
    def is_logged_in(self) -> bool:
        user = self.current()
        return user is not None and user.is_logged_in

    def _save(self, user: UserIdentity) -> UserIdentity:
        self._store.set_json(self._key, user.model_dump(mode="json", by_alias=True))
        return user

    def login(
        self,
        nickname: str,
        method: LoginMethod,
        phone: Optional[str] = None,
    ) -> UserIdentity:
        """Record a sign-in and return the new identity."""
        user = UserIdentity(
            nickname=nickname.strip(),
            phone=phone,
            login_method=method,
        )
        logger.info("user_logged_in", user_id=user.id, method=method.value)
        return self._save(user)

    def logout(self) -> None:
        self._store.delete(self._key)
        logger.info("user_logged_out")

    def update_profile(self, **changes: Any) -> UserIdentity:
        """
        Change nickname, avatar or phone.

        Raises:
            NotLoggedInError: If nobody is signed in
            ValueError: For fields that cannot be edited
        """
        user = self.current()
        if user is None:
            raise NotLoggedInError()

        unknown = set(changes) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        updated = UserIdentity.model_validate({**user.model_dump(), **changes})
        return self._save(updated)

    def delete_account(self) -> None:
        """Erase everything this app stored on the device."""
        for key in (
            StorageKeys.USER_SESSION,
            StorageKeys.MONTHLY_BUDGET,
            StorageKeys.CONVERSATION_HISTORY,
            StorageKeys.API_KEY,
            StorageKeys.TRANSACTIONS,
            StorageKeys.AUDIT_LOG,
        ):
            self._store.delete(key)
        logger.info("account_deleted")


class NotLoggedInError(Exception):
    """A profile operation was attempted with nobody signed in."""

    def __init__(self):
        super().__init__("用户未登录")
