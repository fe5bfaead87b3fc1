"""Bitwarden data models.

``BWItem`` and friends map the vault API's item schema. ``VaultItem`` is the
flattened, read-only record Omni hands to callers.
"""

import re
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


class VaultItemType(int, Enum):
    """Vault item types, valued as the service numbers them."""
    LOGIN = 1
    SECURE_NOTE = 2
    CARD = 3
    IDENTITY = 4
    SSH_KEY = 5

    @property
    def label(self) -> str:
        """CLI spelling, e.g. ``secure-note``."""
        return self.name.lower().replace("_", "-")

    @classmethod
    def parse(cls, value: str) -> "VaultItemType":
        """Parse ``login``, ``secure-note``, ``SecureNote``, ``secure_note``..."""
        key = re.sub(r"[-_\s]", "", value).lower()
        for item_type in cls:
            if item_type.name.replace("_", "").lower() == key:
                return item_type
        choices = ", ".join(t.label for t in cls)
        raise ValueError(f"{value!r} is not a vault item type (choose from {choices})")


# =============================================================================
# Vault API Models
# =============================================================================

def _none_as_empty(value):
    """The vault API sends null for empty lists."""
    return [] if value is None else value


class BWBaseModel(BaseModel):
    """Base model for vault API objects."""

    class Config:
        populate_by_name = True
        extra = "ignore"


class BWUri(BWBaseModel):
    uri: Optional[str] = None


class BWLogin(BWBaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    totp: Optional[str] = None
    uris: Annotated[List[BWUri], BeforeValidator(_none_as_empty)] = Field(default_factory=list)


class BWCard(BWBaseModel):
    cardholderName: Optional[str] = None
    brand: Optional[str] = None
    number: Optional[str] = None
    expMonth: Optional[str] = None
    expYear: Optional[str] = None
    code: Optional[str] = None


class BWIdentity(BWBaseModel):
    title: Optional[str] = None
    firstName: Optional[str] = None
    middleName: Optional[str] = None
    lastName: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    address3: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postalCode: Optional[str] = None
    country: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    ssn: Optional[str] = None
    username: Optional[str] = None
    passportNumber: Optional[str] = None
    licenseNumber: Optional[str] = None


class BWSshKey(BWBaseModel):
    privateKey: Optional[str] = None
    publicKey: Optional[str] = None
    keyFingerprint: Optional[str] = None


class BWField(BWBaseModel):
    """Custom field attached to an item."""
    name: Optional[str] = None
    value: Optional[str] = None


class BWItem(BWBaseModel):
    """Vault item as returned by ``/list/object/items``."""
    id: Optional[str] = None
    type: int
    name: str
    notes: Optional[str] = None
    login: Optional[BWLogin] = None
    card: Optional[BWCard] = None
    identity: Optional[BWIdentity] = None
    sshKey: Optional[BWSshKey] = None
    fields: Annotated[List[BWField], BeforeValidator(_none_as_empty)] = Field(default_factory=list)


# =============================================================================
# Normalized Model
# =============================================================================

def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _flatten(model: Optional[BaseModel]) -> Dict[str, str]:
    if model is None:
        return {}
    return {
        _snake(key): value
        for key, value in model.model_dump().items()
        if isinstance(value, str) and value
    }


class VaultItem(BaseModel):
    """A vault item with its attributes flattened into ``fields``.

    ``fields`` holds the type-specific attributes (``username``, ``password``,
    ``uri``, ``number``, ``email``...), ``notes``, and the item's custom
    fields. Built-in attributes win over custom fields of the same name.
    """
    id: Optional[str] = None
    item_type: VaultItemType
    name: str
    fields: Dict[str, str] = Field(default_factory=dict)

    class Config:
        frozen = True

    @classmethod
    def from_bw(cls, item: BWItem) -> "VaultItem":
        item_type = VaultItemType(item.type)
        fields: Dict[str, str] = {}

        if item.login:
            fields.update(_flatten(item.login))
            uris = [u.uri for u in item.login.uris if u.uri]
            for i, uri in enumerate(uris):
                fields["uri" if i == 0 else f"uri_{i + 1}"] = uri
        fields.update(_flatten(item.card))
        fields.update(_flatten(item.identity))
        fields.update(_flatten(item.sshKey))
        if item.notes:
            fields["notes"] = item.notes

        for custom in item.fields:
            if custom.name and custom.value is not None:
                fields.setdefault(custom.name, custom.value)

        return cls(id=item.id, item_type=item_type, name=item.name, fields=fields)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "type": self.item_type.label,
            "name": self.name,
            "fields": dict(self.fields),
        }
