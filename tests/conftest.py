import pytest

from sfcrud.crud import CRUD


def sobject(sf_type="Account", id_=None, **fields):
    """Build a raw sObject as the SOAP parser returns it (Id sent twice)."""
    rec = {"xsi:type": "sObject", "type": sf_type}
    if id_ is not None:
        rec["Id"] = [id_, id_]
    rec.update(fields)
    return rec


def query_page(records, done=True, locator=None):
    page = {"xsi:type": "QueryResult", "done": "true" if done else "false", "size": "0"}
    if locator:
        page["queryLocator"] = locator
    if records is not None:
        page["records"] = records
    return page


class FakeRemote(CRUD):
    """CRUD client whose _call replays scripted responses and records calls."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.sleeps = 0

    def _call(self, operation, *params):
        self.calls.append((operation, params))
        result = self.responses.pop(0) if self.responses else None
        if isinstance(result, Exception):
            raise result
        return result, {}

    def _prepare_sobjects(self, records):
        from sfcrud.soap import SoapParam

        return [SoapParam("sObjects", dict(r)) for r in records]

    def _sleep(self):
        self.sleeps += 1
        super()._sleep()


@pytest.fixture
def fake_remote():
    return FakeRemote


@pytest.fixture
def make_sobject():
    return sobject


@pytest.fixture
def make_page():
    return query_page


@pytest.fixture(autouse=True)
def dummy_api(monkeypatch):
    """
    Global DummyAPI replacement for the CLI.
    Applies to ALL tests unless they patch SalesforceAPI themselves.
    """

    class DummyAPI(FakeRemote):
        instances = []

        def __init__(self, config):
            super().__init__()
            self.config = config
            self.instance_url = "https://example.my.salesforce.com"
            DummyAPI.instances.append(self)

        def connect(self):
            return None

        def _call(self, operation, *params):
            self.calls.append((operation, params))
            if operation in ("query", "queryAll"):
                return query_page([sobject(id_="001000000000001AAA", Name="Acme Corp")]), {}
            if operation == "retrieve":
                return sobject(id_=params[-1].value, Name="Acme Corp"), {}
            n = len(params)
            results = [{"id": f"001{i:015d}", "success": "true"} for i in range(n)]
            return (results[0] if n == 1 else results), {}

    monkeypatch.setattr("sfcrud.cli.SalesforceAPI", DummyAPI)
    return DummyAPI
