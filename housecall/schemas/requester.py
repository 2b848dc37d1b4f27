# housecall/schemas/requester.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class AccountStatus(str, Enum):
    EXISTING = "existing"
    NEW = "new"


class AddressSource(str, Enum):
    ON_FILE = "on_file"              # existing client, address already validated at onboarding
    NEW_FOR_VISIT = "new_for_visit"  # existing client who moved / visit elsewhere
    ENTERED = "entered"              # new client typing their address


class Address(BaseModel):
    line1: str = ""
    line2: Optional[str] = None
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = "US"

    @field_validator("line1", "city", "state", "zip", mode="before")
    @classmethod
    def _strip(cls, v: Optional[str]) -> str:
        return " ".join(str(v or "").split())

    @field_validator("line2", mode="before")
    @classmethod
    def _blank_line2(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = " ".join(str(v).split())
        return v or None

    def is_complete(self) -> bool:
        return all((self.line1, self.city, self.state, self.zip))

    def one_line(self) -> str:
        return ", ".join(p for p in (self.line1, self.city, self.state, self.zip) if p)

    def same_place(self, other: Optional["Address"]) -> bool:
        if other is None:
            return False
        return _address_key(self) == _address_key(other)


def _address_key(a: Address) -> tuple:
    return tuple(
        (getattr(a, f) or "").lower()
        for f in ("line1", "line2", "city", "state", "zip", "country")
    )


class FullName(BaseModel):
    first: str = Field(..., min_length=1, max_length=80)
    last: str = Field(..., min_length=1, max_length=80)
    middle: Optional[str] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None

    @field_validator("first", "last")
    @classmethod
    def _clean(cls, v: str) -> str:
        v = " ".join(v.strip().split())
        if not v:
            raise ValueError("name parts cannot be empty")
        return v


class ContactInfo(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    phone: str = Field(..., min_length=7, max_length=32)
    can_text: Optional[str] = Field(None, description="'Yes' / 'No' consent to text messages")

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("email must look like name@example.com")
        return v

    @field_validator("can_text")
    @classmethod
    def _yes_no(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ("Yes", "No"):
            raise ValueError("can_text must be 'Yes' or 'No'")
        return v


class Requester(BaseModel):
    """The person submitting the request."""

    account_status: AccountStatus
    authenticated: bool = False
    name: FullName
    contact: ContactInfo
    physical_address: Optional[Address] = None
    mailing_address: Optional[Address] = None
    address_source: AddressSource = AddressSource.ENTERED

    @model_validator(mode="after")
    def _check_shape(self) -> "Requester":
        if self.authenticated and self.account_status != AccountStatus.EXISTING:
            raise ValueError("an authenticated requester must be an existing account holder")
        if self.account_status == AccountStatus.NEW and self.address_source != AddressSource.ENTERED:
            raise ValueError("new account holders always enter their address")
        # mailing address is only kept when it differs from the physical one
        if self.mailing_address is not None and self.mailing_address.same_place(self.physical_address):
            self.mailing_address = None
        return self

    @property
    def is_existing(self) -> bool:
        return self.account_status == AccountStatus.EXISTING


class RequesterPrefill(BaseModel):
    """What a signed-in client's records can fill in ahead of time."""

    first: Optional[str] = None
    last: Optional[str] = None
    phone: Optional[str] = None
    physical_address: Optional[Address] = None
