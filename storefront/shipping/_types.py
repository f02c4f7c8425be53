"""Shipping address value and its field keys."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum


class FieldKey(Enum):
    """Shipping fields in canonical order; values are the wire names."""
    FULL_NAME = "fullName"
    EMAIL = "email"
    PHONE = "phone"
    ADDRESS = "address"
    CITY = "city"
    ZIP_CODE = "zipCode"
    COUNTRY = "country"

    @property
    def attr(self) -> str:
        return _ATTRS[self]


_ATTRS = {
    FieldKey.FULL_NAME: "full_name",
    FieldKey.EMAIL: "email",
    FieldKey.PHONE: "phone",
    FieldKey.ADDRESS: "address",
    FieldKey.CITY: "city",
    FieldKey.ZIP_CODE: "zip_code",
    FieldKey.COUNTRY: "country",
}

# wire names, snake_case names and the aliases payment providers use
_ALIASES: dict[str, FieldKey] = {
    **{key.value: key for key in FieldKey},
    **{attr: key for key, attr in _ATTRS.items()},
    "name": FieldKey.FULL_NAME,
    "zip": FieldKey.ZIP_CODE,
    "postal_code": FieldKey.ZIP_CODE,
    "country_code": FieldKey.COUNTRY,
    "address_line_1": FieldKey.ADDRESS,
}

_EMAIL = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


def is_valid_email(value: str) -> bool:
    return _EMAIL.fullmatch(value) is not None


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    """
    Possibly partial address. Empty string means "not provided".
    """
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    zip_code: str = ""
    country: str = ""

    def get(self, key: FieldKey) -> str:
        return getattr(self, key.attr)

    def with_fields(self, **changes: str) -> ShippingAddress:
        return replace(self, **changes)

    def updated(self, fields: Mapping[str, object]) -> ShippingAddress:
        """Overwrite the fields present in `fields`; unknown keys are ignored."""
        changes = {
            _ALIASES[name].attr: _text(value)
            for name, value in fields.items()
            if name in _ALIASES
        }
        return replace(self, **changes)

    def to_wire(self) -> dict[str, str]:
        return {key.value: self.get(key) for key in FieldKey}

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> ShippingAddress:
        return cls().updated(data)


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


def format_address_line(address: ShippingAddress) -> str:
    parts = (address.address, address.city, address.zip_code, address.country)
    return ", ".join(part.strip() for part in parts if part.strip())
