"""Omni error taxonomy.

Every failure surfaced to the command line is an ``OmniError``. Each family
carries its own exit code so scripts can tell a bad configuration from a
rejected credential, an unreachable service, or a half-finished case update.
"""

from typing import List, Optional


class OmniError(Exception):
    """Base exception for all Omni errors."""
    exit_code: int = 1


# =============================================================================
# Configuration
# =============================================================================

class ConfigError(OmniError):
    """The local secrets file cannot be used."""
    exit_code = 3


class ConfigMissingError(ConfigError):
    """The secrets file does not exist."""

    def __init__(self, path):
        super().__init__(f"Configuration not found at {path}. Run 'omni setup' first.")
        self.path = path


class ConfigIncompleteError(ConfigError):
    """One or more required settings are absent or empty."""

    def __init__(self, path, missing: List[str]):
        super().__init__(
            f"Configuration at {path} is incomplete, missing: {', '.join(missing)}. "
            "Re-run 'omni setup'."
        )
        self.path = path
        self.missing = missing


class ConfigInvalidValueError(ConfigError):
    """A value cannot be stored in the flat NAME=value format."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid value for {name}: {reason}")
        self.name = name


# =============================================================================
# Authentication (shared by both services)
# =============================================================================

class AuthError(OmniError):
    """Base exception for session establishment failures."""

    def __init__(self, message: str, service: str):
        super().__init__(message)
        self.service = service


class InvalidCredentialsError(AuthError):
    """The service rejected the credentials (4xx)."""
    exit_code = 4

    def __init__(self, service: str, status_code: int, response_body: str = ""):
        super().__init__(
            f"{service} rejected the configured credentials ({status_code}). "
            "Check them and re-run 'omni setup'.",
            service,
        )
        self.status_code = status_code
        self.response_body = response_body


class ServiceUnreachableError(AuthError):
    """Network or transport failure while authenticating."""
    exit_code = 5

    def __init__(self, service: str, reason: str):
        super().__init__(f"Could not reach {service}: {reason}. Check connectivity.", service)
        self.reason = reason


class UnexpectedResponseError(AuthError):
    """The service answered, but not with a usable session."""
    exit_code = 6

    def __init__(self, service: str, status_code: int, response_body: str = ""):
        super().__init__(
            f"Unexpected response from {service} ({status_code}): {response_body[:200]}",
            service,
        )
        self.status_code = status_code
        self.response_body = response_body


# =============================================================================
# Vault
# =============================================================================

class VaultError(OmniError):
    """Base exception for vault operations."""
    exit_code = 7


class VaultSessionExpiredError(VaultError):
    """The vault session ttl has elapsed; no request was sent."""

    def __init__(self):
        super().__init__("Vault session expired before the request was sent")


class VaultItemNotFoundError(VaultError):
    """No vault item matches the requested type and name."""

    def __init__(self, item_type: str, name: str):
        super().__init__(f"No {item_type} item named '{name}' in the vault")
        self.item_type = item_type
        self.name = name


class VaultFieldNotFoundError(VaultError):
    """The vault item exists but has no field with the requested name."""

    def __init__(self, item_name: str, field: str):
        super().__init__(f"Item '{item_name}' has no field '{field}'")
        self.item_name = item_name
        self.field = field


class VaultRequestError(VaultError):
    """Transport or HTTP failure talking to the vault."""

    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


# =============================================================================
# ERP cases
# =============================================================================

class CaseError(OmniError):
    """Base exception for ERP case operations."""
    exit_code = 8


class CaseSessionExpiredError(CaseError):
    """The ERP session ttl has elapsed; no request was sent."""

    def __init__(self):
        super().__init__("ERP session expired before the request was sent")


class CaseNotFoundError(CaseError):
    """The case number does not resolve."""

    def __init__(self, case_number: int, message: str = ""):
        detail = f": {message}" if message else ""
        super().__init__(f"Case {case_number} not found{detail}")
        self.case_number = case_number


class NoOpenTaskError(CaseError):
    """The case has no open task to complete. Nothing was changed."""

    def __init__(self, case_number: int):
        super().__init__(f"Case {case_number} has no open task to complete")
        self.case_number = case_number


class CaseRequestError(CaseError):
    """Transport, HTTP or function-level failure talking to the ERP."""

    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class PartialCompletionError(CaseError):
    """The case was read but its task completion was not applied.

    The open task was found, then submitting its completion failed, so the
    remote case may not reflect the intended assignee or comment.
    """
    exit_code = 9

    def __init__(self, case_number: int, cause: Optional[Exception] = None):
        reason = f": {cause}" if cause else ""
        super().__init__(
            f"Case {case_number} was read but completing its task failed{reason}. "
            "Verify the case with 'omni epicor case get-status' before retrying."
        )
        self.case_number = case_number
        self.cause = cause
