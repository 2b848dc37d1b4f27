# housecall/schemas/catalog.py
from typing import List, Optional

from pydantic import BaseModel, Field


class Species(BaseModel):
    id: int | str
    name: str = Field(..., min_length=1)


class Breed(BaseModel):
    id: int | str
    name: str = Field(..., min_length=1)
    species_id: Optional[int | str] = None


class ProviderZone(BaseModel):
    zone_id: int | str
    accepting_new_patients: bool


class Provider(BaseModel):
    id: int | str
    name: str
    email: Optional[str] = None
    # None when the backend does not say which zones this provider covers
    zones: Optional[List[ProviderZone]] = None


class AppointmentCategory(BaseModel):
    id: int | str
    name: str
    pretty_name: Optional[str] = None
    show_in_request_form: bool = True
    new_patient_allowed: bool = False
    default_duration: Optional[int] = None

    @property
    def label(self) -> str:
        return self.pretty_name or self.name


class EmailCheckResult(BaseModel):
    exists: bool
    has_account: bool
    practice_id: Optional[int] = None

    @property
    def should_sign_in(self) -> bool:
        return self.exists and self.has_account
