"""
Report Type Registry

Single catalogue of every report kind and how its fields are stored.
Writer and Reader consult this table instead of branching per kind.

Each descriptor maps canonical (API-facing, camelCase) field names to columns
on the reports table. Anything not mapped travels in extraData.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .errors import UnknownReportType


@dataclass(frozen=True)
class FieldMapping:
    """One promoted field: canonical name, storage column, required flag."""
    canonical: str
    column: str
    required: bool = False


@dataclass(frozen=True)
class ReportTypeDescriptor:
    """Static description of a report kind."""
    type_code: str
    label: str
    storage: str  # Discriminator value in reports.report_type
    fields: Tuple[FieldMapping, ...]
    extra_data_policy: str = "object"

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return tuple(f.canonical for f in self.fields if f.required)

    @property
    def canonical_names(self) -> Tuple[str, ...]:
        return tuple(f.canonical for f in self.fields)


def _f(canonical: str, column: str, required: bool = False) -> FieldMapping:
    return FieldMapping(canonical=canonical, column=column, required=required)


# =============================================================================
# DESCRIPTORS (registry order is the lookup and listing order)
# =============================================================================

_DESCRIPTORS: Tuple[ReportTypeDescriptor, ...] = (
    ReportTypeDescriptor(
        type_code="asr",
        label="Air Safety Report",
        storage="asr",
        fields=(
            _f("flightNumber", "flight_number", required=True),
            _f("aircraftType", "aircraft_type"),
            _f("route", "route"),
            _f("eventDateTime", "event_date_time"),
            _f("contributingFactors", "contributing_factors"),
            _f("correctiveActions", "corrective_actions"),
            _f("phaseOfFlight", "phase_of_flight"),
            _f("riskLevel", "risk_level"),
        ),
    ),
    ReportTypeDescriptor(
        type_code="or",
        label="Occurrence Report",
        storage="or",
        fields=(
            _f("location", "location", required=True),
            _f("phaseOfFlight", "phase_of_flight"),
            _f("riskLevel", "risk_level"),
            _f("followUpActions", "follow_up_actions"),
        ),
    ),
    ReportTypeDescriptor(
        type_code="rir",
        label="Ramp Incident Report",
        storage="rir",
        fields=(
            _f("groundCrewNames", "ground_crew_names"),
            _f("vehicleInvolved", "vehicle_involved"),
            _f("damageType", "damage_type", required=True),
            _f("correctiveSteps", "corrective_steps"),
            _f("location", "location"),
        ),
    ),
    ReportTypeDescriptor(
        type_code="ncr",
        label="Nonconformity Report",
        storage="ncr",
        fields=(
            _f("department", "department", required=True),
            _f("nonconformityType", "nonconformity_type", required=True),
            _f("rootCause", "root_cause"),
            _f("responsiblePerson", "responsible_person"),
            _f("preventiveActions", "preventive_actions"),
        ),
    ),
    ReportTypeDescriptor(
        type_code="cdf",
        label="Commander's Discretion Form",
        storage="cdf",
        fields=(
            _f("flightNumber", "flight_number"),
            _f("aircraftType", "aircraft_type"),
            _f("eventDateTime", "event_date_time"),
            _f("discretionReason", "discretion_reason", required=True),
            _f("timeExtension", "time_extension"),
            _f("crewFatigueDetails", "crew_fatigue_details"),
            _f("finalDecision", "final_decision"),
        ),
    ),
    ReportTypeDescriptor(
        type_code="chr",
        label="Confidential Hazard Report",
        storage="chr",
        fields=(
            _f("potentialImpact", "potential_impact", required=True),
            _f("preventionSuggestions", "prevention_suggestions"),
            _f("location", "location"),
        ),
    ),
    ReportTypeDescriptor(
        type_code="captain",
        label="Captain Report",
        storage="captain",
        fields=(
            _f("flightNumber", "flight_number", required=True),
            _f("eventDateTime", "event_date_time"),
        ),
    ),
)

_BY_CODE: Dict[str, ReportTypeDescriptor] = {d.type_code: d for d in _DESCRIPTORS}
_BY_STORAGE: Dict[str, ReportTypeDescriptor] = {d.storage: d for d in _DESCRIPTORS}


def resolve(type_code: Optional[str]) -> ReportTypeDescriptor:
    """Descriptor for a type code. Raises UnknownReportType."""
    descriptor = _BY_CODE.get(type_code) if isinstance(type_code, str) else None
    if descriptor is None:
        raise UnknownReportType(type_code)
    return descriptor


def resolve_storage(storage: str) -> Optional[ReportTypeDescriptor]:
    """Descriptor owning a stored discriminator value, or None for rows of a retired kind."""
    return _BY_STORAGE.get(storage)


def list_all() -> Tuple[ReportTypeDescriptor, ...]:
    """All descriptors in registry order."""
    return _DESCRIPTORS


def type_codes() -> Tuple[str, ...]:
    return tuple(d.type_code for d in _DESCRIPTORS)
