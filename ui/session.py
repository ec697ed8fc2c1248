"""
The pretend login the pages can use without a backend at all.

It keeps four keys in a "session storage" mapping (a plain dict by default,
anything dict-like works), all stored as strings just like the browser does:
- isLoggedIn  "true" when somebody is logged in
- userRole    volunteer / coordinator / donor / admin / moderator
- username
- userId

Watch out for:
- Nothing here is checked against the server, it's a demo mode. The real
  login goes through Workflows.login() in pages.py
- The form rules still apply, so a bad email or short password is refused
"""

import zlib
from dataclasses import dataclass

from ui.forms import validate_login, validate_registration

SESSION_KEYS = ("isLoggedIn", "userRole", "username", "userId")


@dataclass
class SessionUser:
    id: int
    username: str
    role: str


class MockAuth:

    def __init__(self, storage=None):
        self.storage = storage if storage is not None else {}

    @property
    def is_logged_in(self):
        return self.storage.get("isLoggedIn") == "true"

    def current_user(self):
        if not self.is_logged_in:
            return None
        return SessionUser(
            id=int(self.storage.get("userId", 0)),
            username=self.storage.get("username", ""),
            role=self.storage.get("userRole", "volunteer"),
        )

    def _remember(self, username, email, role):
        user_id = zlib.crc32(email.lower().encode()) % 100000 + 1      # same email, same id
        self.storage.update({
            "isLoggedIn": "true",
            "userRole": role,
            "username": username,
            "userId": str(user_id),
        })
        return self.current_user()

    def login(self, email, password, role="volunteer"):
        """Returns (user, errors). user is None when the form didn't pass."""
        errors = validate_login({"email": email, "password": password})
        if errors:
            return None, errors
        return self._remember(email.split("@")[0], email, role), {}

    def register(self, data):
        errors = validate_registration(data)
        if errors:
            return None, errors
        return self._remember(data["username"], data["email"], data["role"]), {}

    def logout(self):
        for key in SESSION_KEYS:
            self.storage.pop(key, None)
