"""Epicor Connector Package.

ERP session client for Epicor cases, backed by the Omni Epicor Function
library.
"""

from omni.connectors.epicor.ep_client import EpicorClient, EpicorSession
from omni.connectors.epicor.ep_models import (
    CaseState,
    CaseStatus,
    CaseStatusResponse,
    CompleteTaskResponse,
)

__all__ = [
    "EpicorClient",
    "EpicorSession",
    "CaseState",
    "CaseStatus",
    "CaseStatusResponse",
    "CompleteTaskResponse",
]
