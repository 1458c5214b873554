from civicportal.clients.base import RestCollection, create_http_client
from civicportal.clients.identity import IdentityCollection
from civicportal.clients.issues import IssueCollection

__all__ = [
    "IdentityCollection",
    "IssueCollection",
    "RestCollection",
    "create_http_client",
]
