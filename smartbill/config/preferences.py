"""
User Preferences

Values the user edits inside the app: the monthly budget and the model
API key. Both live in the key/value store, not in the environment.

The budget is stored as a string-encoded integer. Anything unreadable
or non-positive reads back as the default budget.
"""

from typing import Optional

import structlog

from smartbill.services.storage import KeyValueStore, StorageKeys

logger = structlog.get_logger(__name__)


class UserPreferences:

    def __init__(
        self,
        store: KeyValueStore,
        default_budget: int = 3000,
        max_budget: int = 20000,
    ):
        self._store = store
        self._default_budget = default_budget
        self._max_budget = max_budget

    @property
    def monthly_budget(self) -> int:
        raw = self._store.get(StorageKeys.MONTHLY_BUDGET)
        if raw is None:
            return self._default_budget
        try:
            value = int(float(raw))
        except (TypeError, ValueError, OverflowError):
            logger.warning("budget_unreadable", value=raw)
            return self._default_budget
        return value if value > 0 else self._default_budget

    def set_monthly_budget(self, budget: int) -> int:
        """
        Store a new monthly budget.

        Raises:
            ValueError: If the budget is not within (0, max_budget]
        """
        if isinstance(budget, bool) or not isinstance(budget, int):
            raise ValueError(f"Budget must be a whole number, got {budget!r}")
        if not 0 < budget <= self._max_budget:
            raise ValueError(f"Budget must be between 1 and {self._max_budget}")
        self._store.set(StorageKeys.MONTHLY_BUDGET, str(budget))
        return budget

    @property
    def api_key(self) -> Optional[str]:
        key = self._store.get(StorageKeys.API_KEY)
        if key is None or not key.strip():
            return None
        return key.strip()

    def get_api_key(self) -> Optional[str]:
        """Credential provider for the model gateway."""
        return self.api_key

    def set_api_key(self, api_key: str) -> None:
        key = (api_key or "").strip()
        if not key:
            raise ValueError("API key must not be empty")
        self._store.set(StorageKeys.API_KEY, key)

    def clear_api_key(self) -> None:
        self._store.delete(StorageKeys.API_KEY)

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None
