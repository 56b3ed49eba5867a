from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional, Tuple

from .exceptions import MalformedResponseError, QueryCancelledError, QueryStringRequiredError
from .normalize import Record, query_records
from .soap import SoapParam

_logger = logging.getLogger(__name__)

# call(operation, *params) -> (result, headers)
RemoteCall = Callable[..., Tuple[Any, Any]]
Accumulator = Callable[[List[Record]], Any]


class QueryMode(Enum):
    STANDARD = "query"
    INCLUDE_ARCHIVED = "queryAll"


class RecordAccumulator:
    """Default accumulator: keeps every page and returns all records so far."""

    def __init__(self) -> None:
        self.records: List[Record] = []

    def __call__(self, batch: List[Record]) -> List[Record]:
        self.records.extend(batch)
        return self.records


class RecordCounter:
    """Accumulator that keeps only a running count of records."""

    def __init__(self) -> None:
        self.count = 0

    def __call__(self, batch: List[Record]) -> int:
        self.count += len(batch)
        return self.count


def _is_done(page: Any) -> bool:
    done = page.get("done") if isinstance(page, dict) else None
    if isinstance(done, bool):
        return done
    if isinstance(done, str) and done.lower() in ("true", "false"):
        return done.lower() == "true"
    raise MalformedResponseError(f"Query response has no usable 'done' flag: {done!r}")


class QueryExecutor:
    """Drive query/queryAll + queryMore until the server reports ``done``.

    ``sleep`` is called before every queryMore and is the place to throttle.
    ``cancel`` is checked between pages.
    """

    def __init__(
        self,
        call: RemoteCall,
        *,
        sleep: Optional[Callable[[], None]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.call = call
        self.sleep = sleep or (lambda: None)
        self.cancel = cancel

    def _query_more(self, locator: str) -> Any:
        result, _headers = self.call("queryMore", SoapParam("queryLocator", locator))
        return result

    def iter_pages(
        self, query_text: Optional[str], mode: QueryMode = QueryMode.STANDARD
    ) -> Iterator[List[Record]]:
        """Yield each page of normalized records, in page order."""
        if not query_text:
            raise QueryStringRequiredError()
        _logger.info("Executing SOQL query: %s", query_text)

        page, _headers = self.call(mode.value, SoapParam("queryString", query_text))
        pages = 1
        yield query_records(page)

        while not _is_done(page):
            if self.cancel is not None and self.cancel.is_set():
                raise QueryCancelledError(pages)
            locator = page.get("queryLocator")
            if not locator:
                raise MalformedResponseError("Query not done but no queryLocator returned")

            self.sleep()
            page = self._query_more(locator)
            pages += 1
            _logger.debug("Fetched page %d via queryMore", pages)
            yield query_records(page)

    def execute(
        self,
        query_text: Optional[str],
        mode: QueryMode = QueryMode.STANDARD,
        accumulator: Optional[Accumulator] = None,
    ) -> Any:
        """Run a query to completion and return the accumulator's last result."""
        accumulator = accumulator or RecordAccumulator()
        result: Any = None
        for batch in self.iter_pages(query_text, mode):
            _logger.debug("Query page with %d record(s)", len(batch))
            result = accumulator(batch)
        return result
