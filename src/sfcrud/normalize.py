"""Clean up raw Partner API records.

The SOAP parser (see :mod:`sfcrud.soap`) returns plain dicts and lists. Nested
structures keep their wire ``xsi:type`` under the ``TYPE_MARKER`` key, which
is the only thing used here to tell a nested record from a nested query
result. Salesforce also sends the ``Id`` element twice for every sObject, so
it arrives as a two-item list and has to be collapsed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Union

TYPE_MARKER = "xsi:type"
ID_FIELD = "Id"

Record = Dict[str, Any]


class ValueKind(Enum):
    SCALAR = "scalar"
    RECORD = "sObject"
    QUERY_RESULT = "QueryResult"


def classify(value: Any) -> ValueKind:
    """Return the kind of a raw field value, based on its structural marker."""
    if isinstance(value, dict):
        marker = value.get(TYPE_MARKER)
        if marker == ValueKind.RECORD.value:
            return ValueKind.RECORD
        if marker == ValueKind.QUERY_RESULT.value:
            return ValueKind.QUERY_RESULT
    return ValueKind.SCALAR


def _collapse_id(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def clean_sobject(raw: Any) -> Union[Record, List[Record]]:
    """Return an unmarked copy of ``raw`` with a single scalar Id.

    ``None`` yields an empty list (zero results) rather than a record.
    """
    if raw is None:
        return []

    copy = {k: v for k, v in raw.items() if k != TYPE_MARKER}

    if ID_FIELD in copy:
        copy[ID_FIELD] = _collapse_id(copy[ID_FIELD])
        if not copy[ID_FIELD]:
            del copy[ID_FIELD]

    for key, value in copy.items():
        kind = classify(value)
        if kind is ValueKind.RECORD:
            copy[key] = clean_sobject(value)
        elif kind is ValueKind.QUERY_RESULT:
            copy[key] = query_records(value)

    return copy


def query_records(raw_result: Any) -> List[Record]:
    """Extract the cleaned records of a query result, always as a list.

    The ``records`` payload may be absent, a single record, or a list of
    records; all three come back as a list.
    """
    if not raw_result:
        return []
    payload = raw_result.get("records")
    if isinstance(payload, list):
        return [clean_sobject(r) for r in payload if r is not None]
    if payload is None:
        return []
    return [clean_sobject(payload)]


def normalize(raw: Any) -> Union[Record, List[Record]]:
    """Normalize either a raw record or a raw query result."""
    if raw is None:
        return []
    if classify(raw) is ValueKind.QUERY_RESULT:
        return query_records(raw)
    return clean_sobject(raw)
