from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, TypeVar

from tqdm import tqdm

from .normalize import Record
from .query import RemoteCall
from .soap import SoapParam

_logger = logging.getLogger(__name__)

# The Partner API rejects create() calls with more than 200 sObjects.
CREATE_CHUNK_SIZE = 200

T = TypeVar("T")


@dataclass
class WriteResult:
    """Outcome of one record in a create/update/delete/undelete call."""

    id: Optional[str]
    success: bool
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> WriteResult:
        errors = raw.get("errors") or []
        if isinstance(errors, dict):
            errors = [errors]
        success = raw.get("success")
        if isinstance(success, str):
            success = success.lower() == "true"
        return cls(id=raw.get("id") or None, success=bool(success), errors=list(errors))


def as_write_results(raw: Any) -> List[WriteResult]:
    """Turn a raw write response (None, one result, or many) into a list."""
    if raw is None:
        return []
    if isinstance(raw, list):
        return [WriteResult.from_raw(r) for r in raw]
    return [WriteResult.from_raw(raw)]


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most ``size`` items, preserving order."""
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


class BatchWriter:
    """Issue one ``create`` call per chunk and concatenate the results."""

    def __init__(
        self,
        call: RemoteCall,
        prepare: Callable[[List[Record]], List[SoapParam]],
        *,
        chunk_size: int = CREATE_CHUNK_SIZE,
        progress: bool = False,
    ) -> None:
        self.call = call
        self.prepare = prepare
        self.chunk_size = chunk_size
        self.progress = progress

    def create(self, records: Sequence[Record]) -> List[WriteResult]:
        chunks = list(chunked(records, self.chunk_size))
        _logger.info("Creating %d record(s) in %d chunk(s)", len(records), len(chunks))

        results: List[WriteResult] = []
        for chunk in tqdm(chunks, desc="create", unit="chunk", disable=not self.progress):
            _logger.debug("Submitting create chunk of %d record(s)", len(chunk))
            raw, _headers = self.call("create", *self.prepare(chunk))
            results.extend(as_write_results(raw))
        return results
