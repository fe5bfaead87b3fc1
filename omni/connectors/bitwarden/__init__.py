"""Bitwarden Connector Package.

Vault session client: client-credentials login, master-password unlock,
and read access to vault items.
"""

from omni.connectors.bitwarden.bw_client import BitwardenClient
from omni.connectors.bitwarden.bw_models import (
    BWItem,
    VaultItem,
    VaultItemType,
)

__all__ = [
    "BitwardenClient",
    "BWItem",
    "VaultItem",
    "VaultItemType",
]
