"""
Declarative document schemas.

Each entity declares its fields once, as an ordered tuple of ``FieldSpec``
plus entity-level ``Rule``s. Both directions are generated from that single
declaration:

- ``map_stored_doc`` turns a raw stored document (possibly written by an
  older client, possibly malformed) into an immutable record. It never
  raises: every field is coerced to its type or replaced by a default.
- ``validate_candidate`` checks a candidate write and returns every violated
  rule, in declaration order, as human-readable messages.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import pytz
from pydantic import BaseModel


# Field kinds
STRING = "string"            # missing/malformed -> "" (or declared default)
OPTIONAL_STRING = "optional_string"  # missing/malformed -> None
ENUM = "enum"                # not a declared choice -> declared default
NUMBER = "number"            # not coercible -> None
DATETIME = "datetime"        # not parseable -> None (or computed default)
GEO = "geo"                  # {latitude, longitude} -> GeoPoint or None
STRING_LIST = "string_list"  # list of strings -> [] when malformed


class GeoPoint(BaseModel):
    latitude: float
    longitude: float

    class Config:
        frozen = True


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str]


Default = Union[Any, Callable[[str, Dict[str, Any]], Any]]


@dataclass(frozen=True)
class FieldSpec:
    """One stored field: where it lives, what it is, what constrains it."""
    stored: str
    attr: str
    kind: str = STRING
    required: bool = False
    max_length: Optional[int] = None
    choices: Tuple[str, ...] = ()
    positive: bool = False
    # Plain value, or callable(doc_id, mapped_so_far) for computed fallbacks
    default: Default = None
    # Legacy field names, or callables(raw) building the value from legacy shapes
    aliases: Tuple[Union[str, Callable[[Mapping[str, Any]], Any]], ...] = ()

    def default_for(self, doc_id: str, mapped: Dict[str, Any]) -> Any:
        if callable(self.default):
            return self.default(doc_id, mapped)
        if self.default is None:
            if self.kind == STRING:
                return ""
            if self.kind == STRING_LIST:
                return []
        if isinstance(self.default, list):
            return list(self.default)
        return self.default


@dataclass(frozen=True)
class Rule:
    """Entity-level rule; ``violated`` receives the candidate lookup function."""
    message: str
    violated: Callable[[Callable[[str], Any]], bool]


@dataclass(frozen=True)
class EntitySchema:
    name: str
    id_attr: str
    fields: Tuple[FieldSpec, ...]
    rules: Tuple[Rule, ...] = field(default_factory=tuple)

    def spec(self, attr: str) -> FieldSpec:
        for spec in self.fields:
            if spec.attr == attr:
                return spec
        raise KeyError(attr)


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Normalize a stored date to an aware UTC datetime.

    Accepts datetime (including Firestore's DatetimeWithNanoseconds), date,
    ISO strings, epoch-seconds mappings or objects ``{seconds, nanoseconds}``
    and epoch-millisecond numbers. Anything else becomes None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _aware(value)
    if isinstance(value, date):
        return pytz.utc.localize(datetime(value.year, value.month, value.day))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            return _aware(datetime.fromisoformat(text))
        except ValueError:
            return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=pytz.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0))
    else:
        seconds = getattr(value, "seconds", None)
        nanos = getattr(value, "nanoseconds", getattr(value, "nanos", 0))
    seconds = to_number(seconds)
    if seconds is None:
        return None
    nanos = to_number(nanos) or 0
    try:
        return datetime.fromtimestamp(seconds + nanos / 1e9, tz=pytz.utc)
    except (OverflowError, OSError, ValueError):
        return None


def to_number(value: Any) -> Optional[Union[int, float]]:
    """Coerce to int/float; None when absent or not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return int(value)
    return value


def to_geo(value: Any) -> Optional[GeoPoint]:
    if value is None:
        return None
    if isinstance(value, Mapping):
        lat, lng = value.get("latitude"), value.get("longitude")
    else:
        lat, lng = getattr(value, "latitude", None), getattr(value, "longitude", None)
    lat, lng = to_number(lat), to_number(lng)
    if lat is None or lng is None:
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return GeoPoint(latitude=float(lat), longitude=float(lng))


def _coerce(spec: FieldSpec, value: Any) -> Any:
    if spec.kind in (STRING, OPTIONAL_STRING):
        return value if isinstance(value, str) else None
    if spec.kind == ENUM:
        return value if isinstance(value, str) and value in spec.choices else None
    if spec.kind == NUMBER:
        return to_number(value)
    if spec.kind == DATETIME:
        return to_datetime(value)
    if spec.kind == GEO:
        return to_geo(value)
    if spec.kind == STRING_LIST:
        if isinstance(value, (list, tuple)):
            return [item for item in value if isinstance(item, str)]
        return None
    return value


def _raw_value(spec: FieldSpec, raw: Mapping[str, Any]) -> Any:
    value = raw.get(spec.stored)
    if value is not None:
        return value
    for alias in spec.aliases:
        value = alias(raw) if callable(alias) else raw.get(alias)
        if value is not None:
            return value
    return None


def map_stored_doc(schema: EntitySchema, model: type, doc_id: str, raw: Optional[Mapping[str, Any]]):
    """Map a raw stored document to ``model``; None only when the doc is absent."""
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raw = {}
    mapped: Dict[str, Any] = {schema.id_attr: doc_id}
    for spec in schema.fields:
        if spec.attr == schema.id_attr:
            continue
        value = _coerce(spec, _raw_value(spec, raw))
        if value is None:
            value = spec.default_for(doc_id, mapped)
        mapped[spec.attr] = value
    # Values are already type-correct, skip pydantic validation so mapping never raises
    return model.model_construct(**mapped)


def to_stored_fields(schema: EntitySchema, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename attribute-keyed values to their stored field names."""
    stored: Dict[str, Any] = {}
    for spec in schema.fields:
        if spec.attr in values:
            value = values[spec.attr]
            if isinstance(value, GeoPoint):
                value = {"latitude": value.latitude, "longitude": value.longitude}
            stored[spec.stored] = value
    return stored


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def candidate_lookup(schema: EntitySchema, candidate: Mapping[str, Any]) -> Callable[[str], Any]:
    """Build a lookup accepting attribute names; finds attr, stored or alias keys."""
    def lookup(attr: str) -> Any:
        spec = schema.spec(attr)
        for key in (spec.attr, spec.stored) + tuple(a for a in spec.aliases if isinstance(a, str)):
            if key in candidate and candidate[key] is not None:
                return candidate[key]
        return None
    return lookup


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _field_errors(spec: FieldSpec, value: Any) -> List[str]:
    label = spec.stored
    if _is_blank(value):
        return [f"{label} is required"] if spec.required else []

    if spec.kind in (STRING, OPTIONAL_STRING):
        if not isinstance(value, str):
            return [f"{label} must be a string"]
        if spec.max_length is not None and len(value.strip()) > spec.max_length:
            return [f"{label} must be {spec.max_length} characters or less"]
    elif spec.kind == ENUM:
        if value not in spec.choices:
            return [f"{label} must be one of: {', '.join(spec.choices)}"]
    elif spec.kind == NUMBER:
        number = to_number(value)
        if number is None or (spec.positive and number < 1):
            return [f"{label} must be a positive number" if spec.positive else f"{label} must be a number"]
        if spec.positive and not isinstance(number, int):
            return [f"{label} must be a whole number"]
    elif spec.kind == DATETIME:
        if to_datetime(value) is None:
            return [f"{label} must be a valid date"]
    elif spec.kind == GEO:
        if to_geo(value) is None:
            return [f"{label} must have a valid latitude and longitude"]
    elif spec.kind == STRING_LIST:
        if not isinstance(value, (list, tuple)):
            return [f"{label} must be a list"]
        if not all(isinstance(item, str) for item in value):
            return [f"{label} must only contain text"]
    return []


def validate_candidate(schema: EntitySchema, candidate: Mapping[str, Any]) -> ValidationResult:
    """Check every declared rule; never touches the store or mutates ``candidate``."""
    if not isinstance(candidate, Mapping):
        candidate = {}
    lookup = candidate_lookup(schema, candidate)
    errors: List[str] = []
    for spec in schema.fields:
        if spec.attr == schema.id_attr:
            continue
        errors.extend(_field_errors(spec, lookup(spec.attr)))
    for rule in schema.rules:
        if rule.violated(lookup):
            errors.append(rule.message)
    return ValidationResult(valid=not errors, errors=errors)
