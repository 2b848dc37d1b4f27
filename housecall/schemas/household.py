# housecall/schemas/household.py
"""
Animals, per-visit needs and the four household shapes an intake can take.

The shapes form a tagged union on `kind`, so a household can never carry the
fields of two shapes at once.
"""
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class SpeciesRef(BaseModel):
    id: int | str
    name: str


class BreedRef(BaseModel):
    id: int | str
    name: str


class KnownAnimal(BaseModel):
    """A patient already on file for this client."""

    id: str
    db_id: Optional[str] = None
    client_id: Optional[str] = None
    name: str
    species: Optional[str] = None
    breed: Optional[str] = None
    dob: Optional[str] = None
    primary_provider_name: Optional[str] = None
    alerts: Optional[str] = None
    selected: bool = False


class DeclaredAnimal(BaseModel):
    """An animal entered during this request; its id only means something inside this session."""

    id: str
    name: str = Field(..., min_length=1, max_length=80)
    species: Optional[SpeciesRef] = None
    breed: Optional[BreedRef] = None
    age: Optional[str] = None
    dob: Optional[str] = None
    sex: Optional[str] = None
    spayed_neutered: Optional[str] = None
    color: Optional[str] = None
    weight: Optional[float] = Field(None, gt=0)
    behavior_notes: Optional[str] = None
    needs_calming_medications: Optional[str] = None
    has_calming_medications: Optional[str] = None
    needs_muzzle_or_special_handling: Optional[str] = None
    selected: bool = True

    @model_validator(mode="after")
    def _breed_needs_species(self) -> "DeclaredAnimal":
        if self.breed is not None and self.species is None:
            raise ValueError("a breed can only be chosen once a species is set")
        return self


class NeedCategory(str, Enum):
    WELLNESS = "Wellness exam / check-up"
    NEW_ILLNESS = "My pet isn't feeling well"
    FOLLOW_UP = "Follow-up on a previous visit"
    TECHNICIAN = "Technician visit (nail trim, booster, blood draw)"
    END_OF_LIFE = "End-of-life care / euthanasia"


class EndOfLifeDetails(BaseModel):
    reason: str = Field(..., min_length=1)
    recent_vet_visit: str = Field(..., min_length=1, description="Seen by a vet for this in the last three months?")
    open_to_alternatives: str = Field(..., min_length=1)
    aftercare_preference: str = Field(..., min_length=1)


class Need(BaseModel):
    """One animal's reason for this visit."""

    category: NeedCategory
    details: Optional[str] = None
    end_of_life: Optional[EndOfLifeDetails] = None

    @field_validator("details")
    @classmethod
    def _blank_details(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def _questionnaire_matches_category(self) -> "Need":
        if self.category == NeedCategory.END_OF_LIFE and self.end_of_life is None:
            raise ValueError("end-of-life care requires the end-of-life questionnaire")
        if self.category != NeedCategory.END_OF_LIFE and self.end_of_life is not None:
            raise ValueError("the end-of-life questionnaire only applies to end-of-life care")
        return self

    @property
    def is_end_of_life(self) -> bool:
        return self.category == NeedCategory.END_OF_LIFE


class ExistingSelection(BaseModel):
    """Authenticated client picking animals from their records."""

    kind: Literal["existing_selected"] = "existing_selected"
    known_animals: List[KnownAnimal]
    needs: Dict[str, Need] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _needs_for_selected_only(self) -> "ExistingSelection":
        _check_needs(self.needs, [a for a in self.known_animals if a.selected])
        return self


class ExistingWithNewAnimals(BaseModel):
    """Authenticated client picking on-file animals and adding new ones."""

    kind: Literal["existing_with_new"] = "existing_with_new"
    known_animals: List[KnownAnimal]
    new_animals: List[DeclaredAnimal] = Field(..., min_length=1)
    needs: Dict[str, Need] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _needs_for_selected_only(self) -> "ExistingWithNewAnimals":
        selected = [a for a in self.known_animals if a.selected] + [a for a in self.new_animals if a.selected]
        _check_needs(self.needs, selected)
        return self


class FreeTextHousehold(BaseModel):
    """Returning client who is not signed in; animals are described in prose."""

    kind: Literal["free_text"] = "free_text"
    description: str = Field(..., min_length=1)
    need: Need


class NewClientHousehold(BaseModel):
    """Brand-new client; every animal is declared during this request."""

    kind: Literal["new_client"] = "new_client"
    new_animals: List[DeclaredAnimal] = Field(..., min_length=1)
    need: Need


Household = Annotated[
    Union[ExistingSelection, ExistingWithNewAnimals, FreeTextHousehold, NewClientHousehold],
    Field(discriminator="kind"),
]


def _check_needs(needs: Dict[str, Need], selected: list) -> None:
    selected_ids = {a.id for a in selected}
    stray = set(needs) - selected_ids
    if stray:
        raise ValueError(f"needs given for animals not selected for this visit: {sorted(stray)}")
    missing = selected_ids - set(needs)
    if missing:
        raise ValueError(f"every selected animal needs a reason for the visit: {sorted(missing)}")
