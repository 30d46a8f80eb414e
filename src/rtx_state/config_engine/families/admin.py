"""Administrative users: ``login user`` plus ``user attribute``."""
import logging
from typing import Any

from ..records import AdminUser
from ..schema import NOT_DERIVABLE, DerivableField, MatchResult
from .base import Family, Slot

logger = logging.getLogger(__name__)


class AdminUserFamily(Family):
    """One record per user name."""

    name = "admin_user"
    record_type = AdminUser

    def consume(self, state: dict, match: MatchResult, params: dict[str, Any]) -> None:
        if match.negated:
            return
        username = params["username"]
        user = state.setdefault(username, AdminUser(username=username))

        if match.pattern_name == "login_user":
            user.encrypted = bool(params["encrypted"])
            if user.encrypted:
                # Hashes cannot be compared with a declared plaintext
                user.password = NOT_DERIVABLE
            else:
                user.password = DerivableField.known(params["password"])
        elif match.pattern_name == "user_attribute":
            user.administrator = params["administrator"]
            user.connection = list(params.get("connection") or [])
            user.gui_pages = list(params.get("gui_page") or [])
            user.login_timer = params.get("login_timer")

    def slots(self) -> list[Slot]:
        return [
            Slot("login_user", self._login_items, keys=("username",)),
            Slot("user_attribute", self._attribute_items, keys=("username",)),
        ]

    @staticmethod
    def _login_items(record: AdminUser) -> dict:
        password = record.password
        if isinstance(password, DerivableField) and password.is_absent:
            return {}
        return {record.username: {
            "username": record.username,
            "encrypted": record.encrypted,
            "password": password,
        }}

    @staticmethod
    def _attribute_items(record: AdminUser) -> dict:
        return {record.username: {
            "username": record.username,
            "administrator": record.administrator,
            "connection": list(record.connection),
            "gui_page": list(record.gui_pages),
            "login_timer": record.login_timer,
        }}
