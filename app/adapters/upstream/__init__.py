"""Name lookup provider adapter layer."""

from app.adapters.upstream.base import AbstractNameLookupClient, LookupOutcome
from app.adapters.upstream.factory import create_name_lookup_client
from app.adapters.upstream.http_client import NameLookupClient

__all__ = [
    "AbstractNameLookupClient",
    "LookupOutcome",
    "NameLookupClient",
    "create_name_lookup_client",
]
