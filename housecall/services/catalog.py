# housecall/services/catalog.py
"""
Species, breed, appointment-category and provider lookups.

Species/breed problems are reported per field (CatalogResolutionError) so the
rest of the request can still be completed.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from rapidfuzz import fuzz, process

from housecall.core.business import NO_PREFERENCE
from housecall.core.errors import CatalogResolutionError, IntakeValidationError
from housecall.core.logging import get_logger
from housecall.schemas.catalog import AppointmentCategory, Breed, Provider, ProviderZone, Species
from housecall.services.backend_client import BackendClient

logger = get_logger(__name__)

# minimum similarity (0-100) for a loose doctor-name match
DOCTOR_MATCH_THRESHOLD = 80


# ---------- providers ----------

def provider_display_name(row: Dict[str, Any]) -> str:
    parts = [row.get(k) for k in ("title", "firstName", "lastName", "designation")]
    name = " ".join(p.strip() for p in parts if isinstance(p, str) and p.strip())
    if name:
        return name
    if row.get("name"):
        return str(row["name"])
    return f"Veterinarian {_row_id(row) or ''}".strip()


def _row_id(row: Dict[str, Any]) -> Any:
    for key in ("id", "pimsId", "employeeId"):
        if row.get(key) is not None:
            return row[key]
    return None


def _provider_zones(row: Dict[str, Any]) -> Optional[List[ProviderZone]]:
    raw = row.get("zones")
    if raw is None and isinstance(row.get("weeklySchedules"), list):
        raw = [z for s in row["weeklySchedules"] for z in (s.get("zones") or [])]
    if not raw:
        return None
    zones = []
    for z in raw:
        zone_id = z.get("zoneId", (z.get("zone") or {}).get("id"))
        if zone_id is None:
            continue
        zones.append(ProviderZone(zone_id=zone_id, accepting_new_patients=bool(z.get("acceptingNewPatients"))))
    return zones or None


def provider_from_row(row: Dict[str, Any]) -> Provider:
    return Provider(
        id=_row_id(row),
        name=provider_display_name(row),
        email=row.get("email"),
        zones=_provider_zones(row),
    )


def providers_for_zone(
    providers: List[Provider],
    zone_id: Optional[int | str],
    new_patient: bool,
) -> List[Provider]:
    """
    Keep providers working the matched zone (and, for new patients, accepting
    them there). Providers without zone data, or an unknown zone, pass through.
    """
    if zone_id is None:
        return list(providers)
    kept = []
    for p in providers:
        if p.zones is None:
            kept.append(p)
            continue
        for z in p.zones:
            if str(z.zone_id) == str(zone_id) and (z.accepting_new_patients or not new_patient):
                kept.append(p)
                break
    return kept


def _strip_title(name: str) -> str:
    name = name.strip()
    if name.lower().startswith("dr."):
        name = name[3:]
    return name.strip()


def resolve_doctor(providers: List[Provider], preferred: Optional[str]) -> Optional[Provider]:
    """Exact name match first, then a containment or fuzzy match. "No preference" resolves to None."""
    if not preferred or preferred.strip() == NO_PREFERENCE:
        return None
    wanted = _strip_title(preferred).lower()

    for p in providers:
        if _strip_title(p.name).lower() == wanted:
            return p
    for p in providers:
        candidate = _strip_title(p.name).lower()
        if wanted in candidate or candidate in wanted:
            return p

    choices = {i: _strip_title(p.name).lower() for i, p in enumerate(providers)}
    best = process.extractOne(wanted, choices, scorer=fuzz.token_set_ratio, score_cutoff=DOCTOR_MATCH_THRESHOLD)
    if best is not None:
        return providers[best[2]]

    logger.info("preferred_doctor_not_found", preferred=preferred, providers=len(providers))
    return None


# ---------- catalogs ----------

class CatalogService:
    def __init__(self, client: BackendClient):
        self.client = client
        self._species: Optional[List[Species]] = None
        self._breeds: Dict[str, List[Breed]] = {}

    async def species(self) -> List[Species]:
        if self._species is None:
            rows = await self.client.fetch_species()
            self._species = _parse_rows(rows, Species, field="species")
        return self._species

    async def breeds(self, species_id: Optional[int | str]) -> List[Breed]:
        """Breeds for a chosen species. Asking before a species is picked is a caller error."""
        if species_id is None or species_id == "":
            raise IntakeValidationError("Choose a species before looking up breeds")
        key = str(species_id)
        if key not in self._breeds:
            rows = [_breed_row(r) for r in await self.client.fetch_breeds(species_id)]
            self._breeds[key] = _parse_rows(rows, Breed, field="breed")
        return self._breeds[key]

    async def appointment_categories(self, new_patient: bool) -> List[AppointmentCategory]:
        rows = await self.client.fetch_appointment_types()
        categories = []
        for row in rows:
            try:
                category = AppointmentCategory(
                    id=row["id"],
                    name=row["name"],
                    pretty_name=row.get("prettyName"),
                    show_in_request_form=bool(row.get("showInApptRequestForm")),
                    new_patient_allowed=bool(row.get("newPatientAllowed")),
                    default_duration=row.get("defaultDuration"),
                )
            except (KeyError, TypeError, ValidationError):
                logger.warning("appointment_category_malformed", row=str(row)[:100])
                continue
            if not category.show_in_request_form:
                continue
            if new_patient and not category.new_patient_allowed:
                continue
            categories.append(category)
        return categories

    async def providers(self, address: Optional[str] = None) -> List[Provider]:
        rows = await self.client.fetch_veterinarians(address)
        return [provider_from_row(r) for r in rows if isinstance(r, dict) and _row_id(r) is not None]


def _breed_row(row: Any) -> Any:
    # breeds carry their species as an id or a nested {id, name}
    if not isinstance(row, dict) or "species" not in row:
        return row
    species = row["species"]
    return {**row, "species_id": species.get("id") if isinstance(species, dict) else species}


def _parse_rows(rows: List[Any], model, field: str) -> list:
    if not rows:
        raise CatalogResolutionError(field, f"No {field} options are available")
    try:
        return [model.model_validate(r) for r in rows]
    except ValidationError as e:
        logger.warning("catalog_malformed", field=field, error=str(e))
        raise CatalogResolutionError(field, f"The {field} list could not be read") from e
