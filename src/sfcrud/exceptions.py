class MissingCredentialsError(RuntimeError):
    """Raised when the required Salesforce env vars are not present."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__("Missing required environment variables: " + ", ".join(missing))


class QueryStringRequiredError(ValueError):
    """Raised when query() / queryAll() is called without a query string."""

    def __init__(self) -> None:
        super().__init__("You must provide a query string!")


class SoapFaultError(RuntimeError):
    """A SOAP fault returned by the Salesforce server."""

    def __init__(self, faultcode: str | None, faultstring: str | None):
        self.faultcode = faultcode
        self.faultstring = faultstring
        super().__init__(f"{faultcode or 'soapenv:Server'}: {faultstring or 'unknown fault'}")


class MalformedResponseError(RuntimeError):
    """The server response does not follow the query continuation protocol."""


class QueryCancelledError(RuntimeError):
    """Pagination was stopped because the cancellation token was set."""

    def __init__(self, pages: int):
        self.pages = pages
        super().__init__(f"Query cancelled after {pages} page(s)")
