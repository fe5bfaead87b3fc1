"""Bitwarden vault client.

Authentication is a two-step exchange:
1. Client credentials -> access token (identity service, OAuth2
   ``client_credentials`` grant)
2. Access token + master password -> vault unlock key (vault API ``/unlock``)

The unlock key is the session token used for every item request. Item
requests go to the vault management API served by ``bw serve``.
"""

import uuid
from typing import List

from omni.config import Settings
from omni.connectors.base import ServiceClient
from omni.connectors.bitwarden.bw_models import BWItem, VaultItem, VaultItemType
from omni.errors import (
    UnexpectedResponseError,
    VaultItemNotFoundError,
    VaultRequestError,
    VaultSessionExpiredError,
)
from omni.observability import get_logger
from omni.session import Session

logger = get_logger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 3600


class BitwardenClient(ServiceClient):
    """Client for the Bitwarden identity service and vault API.

    Usage:
        async with BitwardenClient(settings) as client:
            session = await client.authenticate(client_id, client_secret, master_password)
            items = await client.list_items(session)
            item = await client.get_item(session, VaultItemType.LOGIN, "CAEL10")
    """

    service_name = "bitwarden"

    def __init__(self, settings: Settings):
        super().__init__(timeout_seconds=settings.timeout_seconds)
        self.identity_url = settings.bw_identity_url
        self.api_url = settings.bw_api_url
        self.device_identifier = str(uuid.uuid4())

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def authenticate(self, client_id: str, client_secret: str, master_password: str) -> Session:
        """Log in with client credentials, then unlock the vault.

        Returns:
            Session holding the vault unlock key

        Raises:
            InvalidCredentialsError: Either step answered 4xx
            ServiceUnreachableError: Network failure on either step
            UnexpectedResponseError: Any other reply
        """
        access_token, ttl = await self._request_access_token(client_id, client_secret)
        unlock_key = await self._unlock(access_token, master_password)
        logger.info("Vault unlocked", extra_fields={"ttl_seconds": int(ttl.total_seconds())})
        return Session(service=self.service_name, token=unlock_key, ttl=ttl)

    async def _request_access_token(self, client_id: str, client_secret: str):
        data = {
            "grant_type": "client_credentials",
            "scope": "api",
            "client_id": client_id,
            "client_secret": client_secret,
            "deviceType": "8",  # Linux desktop / CLI
            "deviceIdentifier": self.device_identifier,
            "deviceName": "omni",
        }
        body = await self._send_auth(
            "POST",
            f"{self.identity_url}/connect/token",
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        access_token = body.get("access_token")
        if not access_token:
            raise UnexpectedResponseError(self.service_name, 200, "token response did not include an access token")
        return access_token, self._token_ttl(body.get("expires_in"), DEFAULT_TOKEN_TTL_SECONDS)

    async def _unlock(self, access_token: str, master_password: str) -> str:
        body = await self._send_auth(
            "POST",
            f"{self.api_url}/unlock",
            json={"password": master_password},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        data = body.get("data") if body.get("success", True) else None
        raw = data.get("raw") if isinstance(data, dict) else None
        if not raw or not isinstance(raw, str):
            raise UnexpectedResponseError(self.service_name, 200, "unlock response did not include a session key")
        return raw

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    async def list_items(self, session: Session) -> List[VaultItem]:
        """List every item visible to the authenticated identity.

        Order is whatever the service returns.

        Raises:
            VaultSessionExpiredError: Session ttl elapsed (no request sent)
            VaultRequestError: Transport or HTTP failure
        """
        if session.is_expired():
            raise VaultSessionExpiredError()

        reply = await self._send(
            "GET",
            f"{self.api_url}/list/object/items",
            lambda reason: VaultRequestError(f"Could not reach the vault: {reason}"),
            headers={"Authorization": session.authorization_header},
        )
        if not reply.ok:
            raise VaultRequestError(
                f"Vault list failed ({reply.status}): {reply.text[:200]}",
                reply.status,
                reply.text,
            )
        try:
            body = reply.json()
            bw_items = [BWItem.model_validate(raw) for raw in body["data"]["data"]]
        except (ValueError, KeyError, TypeError):
            raise VaultRequestError("Vault list returned an unreadable body", reply.status, reply.text)

        items = []
        for bw_item in bw_items:
            try:
                items.append(VaultItem.from_bw(bw_item))
            except ValueError:
                logger.debug(f"Skipping item of unknown type {bw_item.type}")
        logger.info(f"Listed {len(items)} vault items")
        return items

    async def get_item(self, session: Session, item_type: VaultItemType, name: str) -> VaultItem:
        """Get the item matching ``(item_type, name)`` exactly.

        When several items share the type and name, the first in the
        service's return order wins.

        Raises:
            VaultSessionExpiredError: Session ttl elapsed (no request sent)
            VaultItemNotFoundError: No item matches
            VaultRequestError: Transport or HTTP failure
        """
        items = await self.list_items(session)
        matches = [i for i in items if i.item_type == item_type and i.name == name]
        if not matches:
            raise VaultItemNotFoundError(item_type.label, name)
        if len(matches) > 1:
            logger.warning(
                f"{len(matches)} {item_type.label} items named '{name}', using the first",
                extra_fields={"id": matches[0].id},
            )
        return matches[0]
