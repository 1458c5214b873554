"""Issue collection client (/issues)."""

from datetime import datetime, timezone
from typing import Any, Optional

from civicportal.clients.base import RestCollection
from civicportal.schemas.issue import Issue


class IssueCollection(RestCollection):
    path = "/issues"

    async def list_all(self, **params: Any) -> list[Issue]:
        return [self._parse(Issue, record) for record in await self.query(**params)]

    async def get(self, issue_id: Any) -> Optional[Issue]:
        record = await self.fetch(issue_id)
        if record is None:
            return None
        return self._parse(Issue, record)

    async def update(self, issue_id: Any, changes: dict) -> Issue:
        """Partial update; every change stamps updatedAt."""
        payload = {
            **changes,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
        return self._parse(Issue, await self.patch(issue_id, payload))

    async def create(self, issue: dict) -> Issue:
        return self._parse(Issue, await self.insert(issue))
