"""CRUD methods shared by any client that can make Partner API calls.

Classes mixing in :class:`CRUD` must provide::

    _call(operation, *params) -> (result, headers)
    _prepare_sobjects(records) -> list[SoapParam]

query() / query_all() keep calling queryMore() until the server reports
``done`` and return the whole list::

    for rec in api.query("SELECT Id, Name FROM Account"):
        print(rec["Id"])

or hand each page to a callback, which keeps memory flat for huge queries.
The return value is whatever the last callback call returned::

    api.query({"query": soql, "callback": handle_page})
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Union

from .batch import CREATE_CHUNK_SIZE, BatchWriter, WriteResult, as_write_results
from .normalize import Record, normalize
from .query import QueryExecutor, QueryMode
from .soap import SoapParam

_logger = logging.getLogger(__name__)

QueryParams = Union[str, Mapping[str, Any], None]


class CRUD(ABC):
    """query, queryAll, create, update, delete, undelete and retrieve."""

    # Seconds to wait before each queryMore(); 0 disables the pause.
    page_delay: float = 0.0
    # Set to stop a running query between pages.
    cancel_event: Optional[threading.Event] = None
    show_progress: bool = False

    @abstractmethod
    def _call(self, operation: str, *params: SoapParam) -> Any:
        """Make one remote call and return ``(result, headers)``."""

    @abstractmethod
    def _prepare_sobjects(self, records: Sequence[Record]) -> List[SoapParam]:
        """Turn records into ``sObjects`` parameters."""

    def _sleep(self) -> None:
        if self.page_delay > 0:
            time.sleep(self.page_delay)

    # --------------------------- Queries -----------------------------

    def _complete_query(self, params: QueryParams, mode: QueryMode) -> Any:
        if isinstance(params, Mapping):
            query_text = params.get("query")
            callback = params.get("callback")
        else:
            query_text, callback = params, None

        executor = QueryExecutor(self._call, sleep=self._sleep, cancel=self.cancel_event)
        return executor.execute(query_text, mode, callback)

    def query(self, params: QueryParams) -> Any:
        """Run a SOQL query, following queryMore() to the end."""
        return self._complete_query(params, QueryMode.STANDARD)

    def query_all(self, params: QueryParams) -> Any:
        """Same as query(), but includes deleted and archived records."""
        return self._complete_query(params, QueryMode.INCLUDE_ARCHIVED)

    def query_iter(self, soql: str, *, include_archived: bool = False) -> Iterator[Record]:
        """Yield records one by one, fetching pages as they are needed."""
        mode = QueryMode.INCLUDE_ARCHIVED if include_archived else QueryMode.STANDARD
        executor = QueryExecutor(self._call, sleep=self._sleep, cancel=self.cancel_event)
        for batch in executor.iter_pages(soql, mode):
            yield from batch

    # --------------------------- Writes ------------------------------

    def create(self, *records: Record) -> List[WriteResult]:
        """Create sObjects, 200 per API call.

        More than 200 records means more than one API call.
        """
        writer = BatchWriter(
            self._call,
            self._prepare_sobjects,
            chunk_size=CREATE_CHUNK_SIZE,
            progress=self.show_progress,
        )
        return writer.create(records)

    def update(self, *records: Record) -> List[WriteResult]:
        _logger.debug("Objects for update: %s", records)
        _logger.info("Updating %d object(s)", len(records))
        raw, _headers = self._call("update", *self._prepare_sobjects(records))
        return as_write_results(raw)

    def delete(self, *ids: str) -> List[WriteResult]:
        _logger.debug("IDs for deletion: %s", ids)
        _logger.info("Deleting %d object(s)", len(ids))
        raw, _headers = self._call("delete", *(SoapParam("ids", i) for i in ids))
        return as_write_results(raw)

    def undelete(self, *ids: str) -> List[WriteResult]:
        _logger.debug("IDs for undelete: %s", ids)
        _logger.info("Undeleting %d object(s)", len(ids))
        raw, _headers = self._call("undelete", *(SoapParam("ids", i) for i in ids))
        return as_write_results(raw)

    def retrieve(
        self,
        *ids: str,
        fields: Optional[Sequence[str]] = None,
        sobject_type: Optional[str] = None,
    ) -> List[Record]:
        """Retrieve sObjects by Id (not the metadata retrieve)."""
        _logger.debug("IDs for retrieve: %s", ids)
        _logger.info("Retrieving %d object(s)", len(ids))

        params: List[SoapParam] = []
        if fields:
            params.append(SoapParam("fieldList", ", ".join(fields)))
        if sobject_type:
            params.append(SoapParam("sObjectType", sobject_type))
        params.extend(SoapParam("ids", i) for i in ids)

        raw, _headers = self._call("retrieve", *params)
        if raw is None:
            return []
        items = raw if isinstance(raw, list) else [raw]
        # ids that do not exist come back as nil results
        return [normalize(r) for r in items if r is not None]
