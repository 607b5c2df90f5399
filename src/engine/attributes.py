"""
Declarative attribute aliasing.

Feature services spell the same field many ways (OBJECTID / objectid /
ObjectId ...). Instead of hand-written fallback chains per dataset, callers
describe a table of aliases and resolve it generically:

    ROUTE_ALIASES = {
        "route_name": ("ROUTE_PRMRY_NM",),
        "admin_state": ("ADMIN_ST", "STATE"),
    }
    record = map_attributes(feature.attributes, ROUTE_ALIASES)

Each alias is tried as given, then UPPER, lower and Title case, before moving
on to the next alias.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from shared.constants import ID_FIELD_ALIASES


def _variants(name: str) -> Iterable[str]:
    seen = set()
    for candidate in (name, name.upper(), name.lower(), name.title()):
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def resolve_attribute(attributes: Mapping[str, Any], *names: str) -> Optional[Any]:
    """First non-null, non-empty value among the aliases and their case variants."""
    for name in names:
        for candidate in _variants(name):
            value = attributes.get(candidate)
            if value is not None and value != "":
                return value
    return None


def map_attributes(
    attributes: Mapping[str, Any],
    alias_table: Mapping[str, Sequence[str]],
) -> Dict[str, Any]:
    return {key: resolve_attribute(attributes, *aliases) for key, aliases in alias_table.items()}


def feature_id(attributes: Mapping[str, Any], id_field: Optional[str] = None):
    names = ((id_field,) if id_field else ()) + ID_FIELD_ALIASES
    value = resolve_attribute(attributes, *names)
    if value is None or isinstance(value, (int, str)):
        return value
    # float OBJECTIDs (e.g. 7.0) come back from some MapServer layers
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return str(value)
