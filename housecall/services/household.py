# housecall/services/household.py
"""
Uniform animal/need view over the four household shapes.
"""
from __future__ import annotations

import secrets
import string
import time
from typing import List, Optional, Union

from housecall.core.business import estimate_service_minutes
from housecall.schemas.household import (
    DeclaredAnimal,
    ExistingSelection,
    ExistingWithNewAnimals,
    FreeTextHousehold,
    Household,
    KnownAnimal,
    Need,
    NewClientHousehold,
)

Animal = Union[KnownAnimal, DeclaredAnimal]

_BASE36 = string.digits + string.ascii_lowercase


def new_local_animal_id(now_ms: Optional[int] = None) -> str:
    """Id for an animal declared during this request; meaningless outside the session."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"new-{now_ms}-{suffix}"


def declare_animal(name: str, **fields) -> DeclaredAnimal:
    return DeclaredAnimal(id=new_local_animal_id(), name=name, **fields)


class HouseholdModel:
    def __init__(self, household: Household):
        self.household = household

    @property
    def kind(self) -> str:
        return self.household.kind

    def animals(self) -> List[Animal]:
        """Full roster: on-file animals in record order, then declared ones in entry order."""
        h = self.household
        if isinstance(h, ExistingSelection):
            return list(h.known_animals)
        if isinstance(h, ExistingWithNewAnimals):
            return [*h.known_animals, *h.new_animals]
        if isinstance(h, NewClientHousehold):
            return list(h.new_animals)
        return []

    def selected_animals(self) -> List[Animal]:
        return [a for a in self.animals() if a.selected]

    def known_animals(self) -> List[KnownAnimal]:
        return [a for a in self.animals() if isinstance(a, KnownAnimal)]

    def declared_animals(self) -> List[DeclaredAnimal]:
        return [a for a in self.animals() if isinstance(a, DeclaredAnimal)]

    def need_for(self, animal_id: str) -> Optional[Need]:
        h = self.household
        animal = next((a for a in self.animals() if a.id == animal_id), None)
        if animal is None or not animal.selected:
            return None
        if isinstance(h, (ExistingSelection, ExistingWithNewAnimals)):
            return h.needs.get(animal_id)
        if isinstance(h, NewClientHousehold):
            return h.need
        return None

    def household_need(self) -> Optional[Need]:
        """The single need shared by the whole household (free text and new client shapes)."""
        if isinstance(self.household, (FreeTextHousehold, NewClientHousehold)):
            return self.household.need
        return None

    def needs(self) -> List[Need]:
        shared = self.household_need()
        if shared is not None:
            return [shared]
        result = []
        for animal in self.selected_animals():
            need = self.need_for(animal.id)
            if need is not None:
                result.append(need)
        return result

    def has_end_of_life_need(self) -> bool:
        return any(n.is_end_of_life for n in self.needs())

    def service_minutes(self) -> int:
        return estimate_service_minutes(len(self.selected_animals()))
