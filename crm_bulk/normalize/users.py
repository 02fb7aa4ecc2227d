from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from ..db.pagination import fetch_all
from ..store.base import RowStore
from .fields import is_valid_uuid

"""User-reference resolution.

CSV files exported from other CRMs carry owners as names or emails
("Jane Doe", "jane.doe@example.com") where the store expects user ids. The
directory indexes every user under several lower-cased keys and resolves a
free-text value to an id, falling back to the importing user when nothing
matches.
"""

__all__ = [
    "UserDirectory",
    "load_user_directory",
]

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")


class UserDirectory:
    """Lookup of user ids by name / email variants.

    Keys added per user (first writer wins):
    full name, whitespace-collapsed full name, email, email local part and the
    local part with dots replaced by spaces.
    """

    def __init__(self) -> None:
        self.lookup: dict[str, str] = {}
        self.names: dict[str, str] = {}  # user id -> display name
        self.resolved = 0
        self.fallback = 0

    @classmethod
    def from_profiles(
        cls,
        profiles: Iterable[Mapping[str, Any]],
        *,
        name_field: str = "full_name",
        email_field: str = "email",
    ) -> UserDirectory:
        directory = cls()
        for p in profiles:
            directory.add(
                str(p.get("id") or ""),
                str(p.get(name_field) or ""),
                str(p.get(email_field) or ""),
            )
        return directory

    def _put(self, key: str, user_id: str) -> None:
        if key and key not in self.lookup:
            self.lookup[key] = user_id

    def add(self, user_id: str, full_name: str = "", email: str = "") -> None:
        if not user_id:
            return
        if full_name.strip():
            self.names.setdefault(user_id, full_name.strip())
            name = full_name.lower().strip()
            self._put(name, user_id)
            self._put(_WS.sub(" ", name), user_id)
        if email.strip():
            mail = email.lower().strip()
            self.names.setdefault(user_id, mail)
            self._put(mail, user_id)
            local = mail.split("@")[0]
            self._put(local, user_id)
            self._put(local.replace(".", " ").strip(), user_id)

    def resolve(self, value: Any, fallback_user_id: str) -> str:
        """Map ``value`` to a user id.

        Order: already a UUID, exact key, dotted variant, all name parts found in
        one key (needs >= 2 parts), otherwise ``fallback_user_id``.
        """
        if value is None or str(value).strip() == "":
            return fallback_user_id
        text = str(value).strip()
        if is_valid_uuid(text):
            return text

        key = text.lower()
        if key in self.lookup:
            self.resolved += 1
            return self.lookup[key]

        dotted = _WS.sub(".", key)
        if dotted in self.lookup:
            self.resolved += 1
            return self.lookup[dotted]

        parts = key.split()
        if len(parts) >= 2:
            for candidate, user_id in self.lookup.items():
                key_parts = re.split(r"[\s.]+", candidate)
                if all(any(kp in part or part in kp for kp in key_parts if kp) for part in parts):
                    self.resolved += 1
                    logger.debug("user %r resolved by partial match with %r", text, candidate)
                    return user_id

        self.fallback += 1
        logger.debug("user %r not found, using fallback user", text)
        return fallback_user_id

    def display_name(self, user_id: Any) -> str | None:
        if user_id is None:
            return None
        return self.names.get(str(user_id))

    def display_names(self) -> dict[str, str]:
        return dict(self.names)

    def stats(self) -> dict[str, int]:
        return {"resolved": self.resolved, "fallback": self.fallback}

    def __len__(self) -> int:
        return len(self.lookup)


def load_user_directory(
    store: RowStore,
    table: str = "profiles",
    *,
    name_field: str = "full_name",
    email_field: str = "email",
) -> UserDirectory:
    """Build a UserDirectory from every row of the profiles table."""
    profiles = fetch_all(store, table, order_field="id", ascending=True)
    directory = UserDirectory.from_profiles(
        profiles, name_field=name_field, email_field=email_field
    )
    logger.info("user directory ready: %d users, %d lookup keys", len(directory.names), len(directory))
    return directory
