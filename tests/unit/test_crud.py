"""Tests for the CRUD mixin (caller-facing surface)."""

from unittest.mock import patch

import pytest

from sfcrud.batch import WriteResult
from sfcrud.crud import CRUD
from sfcrud.exceptions import QueryStringRequiredError
from sfcrud.query import RecordCounter


class TestQuery:
    """Tests for query / query_all / query_iter."""

    def test_query_string(self, fake_remote, make_sobject, make_page):
        api = fake_remote(
            [
                make_page([make_sobject("Account", "001A")], False, "L-1"),
                make_page([make_sobject("Account", "001B")], False, "L-2"),
                make_page(make_sobject("Account", "001C")),
            ]
        )

        result = api.query("SELECT Id FROM Account")

        assert [r["Id"] for r in result] == ["001A", "001B", "001C"]
        assert [c[0] for c in api.calls] == ["query", "queryMore", "queryMore"]
        assert api.sleeps == 2

    def test_query_all_uses_query_all(self, fake_remote, make_page):
        api = fake_remote([make_page(None)])

        assert api.query_all("SELECT Id FROM Account") == []
        assert api.calls[0][0] == "queryAll"

    def test_query_with_callback_mapping(self, fake_remote, make_sobject, make_page):
        api = fake_remote(
            [
                make_page([make_sobject("Account", "001A"), make_sobject("Account", "001B")], False, "L"),
                make_page(make_sobject("Account", "001C")),
            ]
        )

        result = api.query({"query": "SELECT Id FROM Account", "callback": RecordCounter()})

        assert result == 3

    def test_mapping_without_callback_uses_default(self, fake_remote, make_sobject, make_page):
        api = fake_remote([make_page(make_sobject("Account", "001A"))])

        assert api.query({"query": "SELECT Id FROM Account"}) == [{"type": "Account", "Id": "001A"}]

    def test_default_accumulator_not_shared_between_queries(self, fake_remote, make_sobject, make_page):
        api = fake_remote(
            [make_page(make_sobject("Account", "001A")), make_page(make_sobject("Account", "001B"))]
        )

        api.query("SELECT Id FROM Account")
        second = api.query("SELECT Id FROM Account")

        assert [r["Id"] for r in second] == ["001B"]

    @pytest.mark.parametrize("params", ["", None, {"query": ""}, {"callback": len}])
    def test_missing_query_string(self, fake_remote, params):
        api = fake_remote()

        with pytest.raises(QueryStringRequiredError):
            api.query(params)

        assert api.calls == []

    def test_query_iter(self, fake_remote, make_sobject, make_page):
        api = fake_remote(
            [
                make_page([make_sobject("Account", "001A")], False, "L"),
                make_page([make_sobject("Account", "001B")]),
            ]
        )

        ids = [r["Id"] for r in api.query_iter("SELECT Id FROM Account", include_archived=True)]

        assert ids == ["001A", "001B"]
        assert api.calls[0][0] == "queryAll"

    def test_page_delay_sleeps(self, fake_remote, make_page):
        api = fake_remote([make_page(None, False, "L"), make_page(None)])
        api.page_delay = 0.5

        with patch("sfcrud.crud.time.sleep") as sleep:
            api.query("SELECT Id FROM Account")

        sleep.assert_called_once_with(0.5)

    def test_no_sleep_by_default(self, fake_remote, make_page):
        api = fake_remote([make_page(None, False, "L"), make_page(None)])

        with patch("sfcrud.crud.time.sleep") as sleep:
            api.query("SELECT Id FROM Account")

        sleep.assert_not_called()


class TestWrites:
    """Tests for create / update / delete / undelete / retrieve."""

    def test_create_is_chunked(self, fake_remote):
        api = fake_remote(
            [
                [{"id": str(i), "success": "true"} for i in range(200)],
                {"id": "200", "success": "true"},
            ]
        )
        records = [{"type": "Account", "Name": f"N{i}"} for i in range(201)]

        results = api.create(*records)

        assert [c[0] for c in api.calls] == ["create", "create"]
        assert [len(c[1]) for c in api.calls] == [200, 1]
        assert len(results) == 201
        assert results[-1] == WriteResult(id="200", success=True)

    def test_create_nothing_makes_no_call(self, fake_remote):
        api = fake_remote()

        assert api.create() == []
        assert api.calls == []

    def test_update_is_not_chunked(self, fake_remote):
        api = fake_remote([[{"id": str(i), "success": "true"} for i in range(450)]])
        records = [{"type": "Account", "Id": str(i), "Name": "x"} for i in range(450)]

        results = api.update(*records)

        assert len(api.calls) == 1
        operation, params = api.calls[0]
        assert operation == "update"
        assert len(params) == 450
        assert params[0].name == "sObjects"
        assert len(results) == 450

    @pytest.mark.parametrize("method", ["delete", "undelete"])
    def test_ids_operations_single_call(self, fake_remote, method):
        api = fake_remote([[{"id": str(i), "success": "true"} for i in range(300)]])
        ids = [f"001{i:015d}" for i in range(300)]

        results = getattr(api, method)(*ids)

        assert len(api.calls) == 1
        operation, params = api.calls[0]
        assert operation == method
        assert [p.name for p in params] == ["ids"] * 300
        assert [p.value for p in params] == ids
        assert len(results) == 300

    def test_delete_failure_result(self, fake_remote):
        api = fake_remote(
            [{"id": None, "success": "false", "errors": {"statusCode": "ENTITY_IS_DELETED"}}]
        )

        (res,) = api.delete("001X")

        assert res.success is False
        assert res.errors[0]["statusCode"] == "ENTITY_IS_DELETED"

    def test_retrieve(self, fake_remote, make_sobject):
        api = fake_remote([[make_sobject("Account", "001A", Name="A"), None]])

        result = api.retrieve("001A", "001B", fields=["Id", "Name"], sobject_type="Account")

        operation, params = api.calls[0]
        assert operation == "retrieve"
        assert [(p.name, p.value) for p in params] == [
            ("fieldList", "Id, Name"),
            ("sObjectType", "Account"),
            ("ids", "001A"),
            ("ids", "001B"),
        ]
        assert result == [{"type": "Account", "Id": "001A", "Name": "A"}]

    def test_retrieve_ids_only(self, fake_remote, make_sobject):
        api = fake_remote([make_sobject("Account", "001A")])

        result = api.retrieve("001A")

        assert [p.name for p in api.calls[0][1]] == ["ids"]
        assert result == [{"type": "Account", "Id": "001A"}]


class TestAbstractCollaborators:
    """CRUD subclasses must provide the remote call and sObject preparation."""

    def test_subclass_without_call_cannot_be_created(self):
        class NoCall(CRUD):
            def _prepare_sobjects(self, records):
                return []

        with pytest.raises(TypeError):
            NoCall()

    def test_subclass_without_prepare_cannot_be_created(self):
        class NoPrepare(CRUD):
            def _call(self, operation, *params):
                return None, {}

        with pytest.raises(TypeError):
            NoPrepare()
