"""Identity collection client (/users).

The collection only filters by exact match, and older or seeded records
may carry mixed-case emails. find_by_email() tries the exact lower-cased
match first, then a case-insensitive ``email_like`` pattern (json-server
matches ``_like`` filters as case-insensitive regular expressions), and
compares every candidate again here so only a true case-insensitive
match is returned.
"""

import re
from typing import Optional

from civicportal.clients.base import RestCollection
from civicportal.schemas.user import Identity, UserId


class IdentityCollection(RestCollection):
    path = "/users"

    async def find_by_email(self, email: str) -> Optional[Identity]:
        wanted = email.strip().lower()
        found = self._match_email(await self.query(email=wanted), wanted)
        if found is None:
            pattern = f"^{re.escape(wanted)}$"
            found = self._match_email(await self.query(email_like=pattern), wanted)
        return found

    def _match_email(self, records: list[dict], wanted: str) -> Optional[Identity]:
        for record in records:
            if str(record.get("email", "")).strip().lower() == wanted:
                return self._parse(Identity, record)
        return None

    async def find_by_phone(self, phone: str) -> Optional[Identity]:
        wanted = phone.strip()
        for record in await self.query(phone=wanted):
            if str(record.get("phone", "")).strip() == wanted:
                return self._parse(Identity, record)
        return None

    async def get(self, user_id: UserId) -> Optional[Identity]:
        record = await self.fetch(user_id)
        if record is None:
            return None
        return self._parse(Identity, record)

    async def create(self, identity: dict) -> Identity:
        return self._parse(Identity, await self.insert(identity))

    async def update(self, user_id: UserId, changes: dict) -> Identity:
        return self._parse(Identity, await self.patch(user_id, changes))
