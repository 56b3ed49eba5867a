"""SOAP envelope building and parsing for the Salesforce Partner API.

Responses are turned into plain dicts/lists:

- leaf elements become strings (``None`` for ``xsi:nil="true"``)
- repeated child elements become lists (this is why ``Id`` arrives twice)
- elements typed ``sf:sObject`` or ``QueryResult`` keep that type under the
  ``xsi:type`` key so :mod:`sfcrud.normalize` can classify them
"""

from __future__ import annotations

import datetime as _dt
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from .exceptions import SoapFaultError
from .normalize import ID_FIELD, TYPE_MARKER, ValueKind

SOAPENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
PARTNER_NS = "urn:partner.soap.sforce.com"
SOBJECT_NS = "urn:sobject.partner.soap.sforce.com"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

ET.register_namespace("soapenv", SOAPENV_NS)
ET.register_namespace("urn", PARTNER_NS)
ET.register_namespace("urn1", SOBJECT_NS)
ET.register_namespace("xsi", XSI_NS)

_XSI_TYPE = f"{{{XSI_NS}}}type"
_XSI_NIL = f"{{{XSI_NS}}}nil"
_MARKED_TYPES = {ValueKind.RECORD.value, ValueKind.QUERY_RESULT.value}


@dataclass(frozen=True)
class SoapParam:
    """One named parameter of a SOAP operation (``<urn:name>value</urn:name>``)."""

    name: str
    value: Any


def _local(tag: str) -> str:
    """Strip the namespace from ``{ns}tag`` or a ``prefix:tag`` string."""
    return tag.rsplit("}", 1)[-1].rsplit(":", 1)[-1]


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (_dt.datetime, _dt.date)):
        return value.isoformat()
    return str(value)


# ----------------------------------------------------------------------
# Envelope building
# ----------------------------------------------------------------------
def _append_sobject(parent: ET.Element, tag: str, record: Dict[str, Any]) -> None:
    elem = ET.SubElement(parent, tag)

    # sObject is a fixed sequence: type, fieldsToNull*, Id, then any field
    if record.get("type") is not None:
        _append_value(elem, f"{{{SOBJECT_NS}}}type", record["type"])

    for key, value in record.items():
        if value is None and key not in ("type", ID_FIELD, TYPE_MARKER):
            ET.SubElement(elem, f"{{{SOBJECT_NS}}}fieldsToNull").text = key

    if record.get(ID_FIELD) is not None:
        _append_value(elem, f"{{{SOBJECT_NS}}}{ID_FIELD}", record[ID_FIELD])

    for key, value in record.items():
        if key in ("type", ID_FIELD, TYPE_MARKER) or value is None:
            continue
        _append_value(elem, f"{{{SOBJECT_NS}}}{key}", value)


def _append_value(parent: ET.Element, tag: str, value: Any) -> None:
    if isinstance(value, (list, tuple)):
        for item in value:
            _append_value(parent, tag, item)
    elif isinstance(value, dict):
        _append_sobject(parent, tag, value)
    elif value is None:
        ET.SubElement(parent, tag, {_XSI_NIL: "true"})
    else:
        ET.SubElement(parent, tag).text = _to_text(value)


def build_envelope(
    operation: str,
    params: Iterable[SoapParam] = (),
    *,
    headers: Optional[Dict[str, Dict[str, Any]]] = None,
) -> bytes:
    """Serialize a Partner API request."""
    envelope = ET.Element(f"{{{SOAPENV_NS}}}Envelope")

    header = ET.SubElement(envelope, f"{{{SOAPENV_NS}}}Header")
    for name, fields in (headers or {}).items():
        h = ET.SubElement(header, f"{{{PARTNER_NS}}}{name}")
        for key, value in fields.items():
            ET.SubElement(h, f"{{{PARTNER_NS}}}{key}").text = _to_text(value)

    body = ET.SubElement(envelope, f"{{{SOAPENV_NS}}}Body")
    op = ET.SubElement(body, f"{{{PARTNER_NS}}}{operation}")
    for param in params:
        tag = f"{{{PARTNER_NS}}}{param.name}"
        if isinstance(param.value, dict):
            _append_sobject(op, tag, param.value)
        else:
            _append_value(op, tag, param.value)

    return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)


# ----------------------------------------------------------------------
# Response parsing
# ----------------------------------------------------------------------
def element_to_value(elem: ET.Element) -> Any:
    """Convert an element into a string, None, or a (possibly marked) dict."""
    children = list(elem)
    xsi_type = _local(elem.get(_XSI_TYPE) or "")

    if not children:
        if elem.get(_XSI_NIL) == "true":
            return None
        if xsi_type in _MARKED_TYPES:
            return {TYPE_MARKER: xsi_type}
        return elem.text if elem.text is not None else ""

    out: Dict[str, Any] = {}
    if xsi_type in _MARKED_TYPES:
        out[TYPE_MARKER] = xsi_type

    for child in children:
        key = _local(child.tag)
        value = element_to_value(child)
        if key in out:
            if not isinstance(out[key], list):
                out[key] = [out[key]]
            out[key].append(value)
        else:
            out[key] = value
    return out


def _raise_for_fault(body: ET.Element) -> None:
    fault = body.find(f"{{{SOAPENV_NS}}}Fault")
    if fault is None:
        return
    # faultcode/faultstring may or may not pick up the default namespace
    parts = {_local(child.tag): child.text for child in fault}
    raise SoapFaultError(parts.get("faultcode"), parts.get("faultstring"))


def parse_response(payload: bytes | str) -> Tuple[Any, Dict[str, Any]]:
    """Parse a response envelope into ``(result, headers)``.

    A single ``<result>`` element gives a single value, several give a list,
    none gives ``None``. SOAP faults raise :class:`SoapFaultError`.
    """
    root = ET.fromstring(payload)

    body = root.find(f"{{{SOAPENV_NS}}}Body")
    if body is None:
        raise SoapFaultError(None, "Response has no SOAP Body")
    _raise_for_fault(body)

    headers: Dict[str, Any] = {}
    header = root.find(f"{{{SOAPENV_NS}}}Header")
    if header is not None:
        for child in header:
            headers[_local(child.tag)] = element_to_value(child)

    response = next(iter(body), None)
    if response is None:
        return None, headers

    results = [element_to_value(c) for c in response if _local(c.tag) == "result"]
    if not results:
        return None, headers
    if len(results) == 1:
        return results[0], headers
    return results, headers
