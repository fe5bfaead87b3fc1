"""Service connectors.

One client per external service, each built on ``ServiceClient``:
- bitwarden/: vault session client
- epicor/: ERP case session client
"""

from omni.connectors.base import HttpReply, ServiceClient

__all__ = [
    "HttpReply",
    "ServiceClient",
]
