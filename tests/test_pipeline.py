import threading
from unittest.mock import MagicMock

from api_doc_sync.parser import pysource
from api_doc_sync.parser.errors import ParseBailout
from api_doc_sync.parser.pysource import PySourceParser
from api_doc_sync.sync.models import Target, Visibility
from api_doc_sync.sync.pipeline import synchronize


def _targets() -> list[Target]:
    return [
        Target(file="users/api.py", service="users"),
        Target(file="billing/api.py", service="billing"),
    ]


class TestSynchronizeFixtureApp:
    def test_users_endpoint(self, fixture_app):
        result = synchronize(fixture_app, _targets())
        assert result.complete
        assert result.validation_errors == []

        users = result.targets[0].endpoint
        assert users.name == "get_user"
        assert users.method == "GET"
        assert users.visibility == Visibility.PUBLIC
        assert users.doc == "Fetches a user by id."
        assert [e.code for e in users.errors] == ["NotFound", "Internal"]
        assert users.errors[1].doc == "the database\nwent away"
        assert users.path[1].doc == "the user's numeric id"
        assert users.request_type == "GetUserParams"
        assert users.response_type == "User"

    def test_endpoint_types_come_before_struct_sweep(self, fixture_app):
        result = synchronize(fixture_app, _targets())
        users = result.targets[0].endpoint
        assert [t.name for t in users.types] == ["GetUserParams", "User", "Address"]
        # encoded by the endpoint, so the wire details are kept
        assert users.types[0].fields[0].wire_name == "X-Trace-Id"
        assert users.types[2].fields[0].wire_name is None

    def test_billing_endpoint(self, fixture_app):
        result = synchronize(fixture_app, _targets())
        billing = result.targets[1].endpoint
        assert billing.visibility == Visibility.AUTH
        assert [t.name for t in billing.types] == ["Invoice"]
        assert [f.type for f in billing.types[0].fields] == ["str", "int", "Currency"]

    def test_untargeted_files_are_ignored(self, fixture_app):
        result = synchronize(fixture_app, _targets())
        names = [t.endpoint.name for t in result.targets]
        assert "get_refund" not in names
        assert all(not t.endpoint.has_type("Refund") for t in result.targets)

    def test_caller_targets_are_not_mutated(self, fixture_app):
        targets = _targets()
        result = synchronize(fixture_app, targets)
        assert targets[0].endpoint.name == ""
        assert result.targets[0].service == "users"
        assert result.targets[0].file == "users/api.py"

    def test_idempotent(self, fixture_app):
        first = synchronize(fixture_app, _targets())
        second = synchronize(fixture_app, _targets())
        assert first == second


class TestSynchronizeErrors:
    def test_diagnostics_are_collected(self, tmp_path):
        svc = tmp_path / "svc"
        svc.mkdir()
        (svc / "api.py").write_text("@api(method=['FETCH'])\ndef odd() -> None:\n    pass\n")
        result = synchronize(tmp_path, [Target(file="svc/api.py")])
        assert result.complete
        assert result.validation_errors == [
            "svc/api.py:2: invalid HTTP method 'FETCH'",
            "svc/api.py:2: endpoint odd declares no HTTP methods",
        ]
        assert result.targets[0].endpoint.name == "odd"

    def test_bailout_keeps_earlier_packages(self, fixture_app):
        calls = []

        class FailingParser(PySourceParser):
            def parse_endpoints(self, pkg):
                calls.append(pkg.path)
                if pkg.path == "users":
                    raise ParseBailout("boom")
                return super().parse_endpoints(pkg)

        result = synchronize(fixture_app, _targets(), parser_factory=FailingParser)
        assert calls == ["billing", "users"]
        assert not result.complete
        assert result.targets[1].endpoint.name == "create_invoice"
        assert result.targets[0].endpoint.name == ""
        assert result.validation_errors == ["aborted parsing package 'users': boom"]

    def test_too_many_errors(self, tmp_path):
        svc = tmp_path / "svc"
        svc.mkdir()
        for name in ("a", "b", "c"):
            (svc / f"{name}.py").write_text("def broken(:\n")
        result = synchronize(tmp_path, [Target(file="svc/a.py")], max_errors=2)
        assert not result.complete
        assert len(result.validation_errors) == 3
        assert result.validation_errors[-1].startswith("aborted parsing package 'svc'")

    def test_unexpected_exception_is_contained(self, fixture_app):
        parser = MagicMock()
        parser.load_package.side_effect = RuntimeError("parser crashed")
        result = synchronize(fixture_app, _targets(), parser_factory=lambda ctx: parser)
        assert not result.complete
        assert result.validation_errors == ["internal error: parser crashed"]
        assert [t.file for t in result.targets] == ["users/api.py", "billing/api.py"]

    def test_malformed_declaration_does_not_stop_others(self, fixture_app):
        class BadSegmentParser(PySourceParser):
            def parse_endpoints(self, pkg):
                endpoints = super().parse_endpoints(pkg)
                for ep in endpoints:
                    if ep.name == "get_user":
                        ep.path[0] = ep.path[0].__class__(type="bogus", value="users")
                return endpoints

        result = synchronize(fixture_app, _targets(), parser_factory=BadSegmentParser)
        assert result.complete
        assert len(result.validation_errors) == 1
        assert result.validation_errors[0].startswith("users/api.py:34: cannot correlate get_user")
        assert result.targets[1].endpoint.name == "create_invoice"
        # the struct sweep still runs for the file
        assert result.targets[0].endpoint.has_type("Address")

    def test_empty_tuple_annotation_keeps_other_packages(self, tmp_path):
        (tmp_path / "alpha").mkdir()
        (tmp_path / "alpha" / "api.py").write_text(
            "class Odd:\n    items: tuple[()]\n\n@api\ndef ping() -> None:\n    pass\n"
        )
        (tmp_path / "beta").mkdir()
        (tmp_path / "beta" / "api.py").write_text("@api\ndef pong() -> None:\n    pass\n")

        targets = [Target(file="alpha/api.py"), Target(file="beta/api.py")]
        result = synchronize(tmp_path, targets)
        assert result.complete
        assert result.validation_errors == []
        assert [t.endpoint.name for t in result.targets] == ["ping", "pong"]
        [odd] = result.targets[0].endpoint.types
        assert odd.fields[0].type == "tuple[()]"

    def test_unparseable_endpoint_is_a_diagnostic(self, tmp_path, monkeypatch):
        (tmp_path / "alpha").mkdir()
        (tmp_path / "alpha" / "api.py").write_text("@api\ndef ping(req: Weird) -> None:\n    pass\n")
        (tmp_path / "beta").mkdir()
        (tmp_path / "beta" / "api.py").write_text("@api\ndef pong() -> None:\n    pass\n")
        original = pysource._type_ref

        def type_ref(node, known):
            if getattr(node, "id", None) == "Weird":
                raise IndexError("tuple index out of range")
            return original(node, known)

        monkeypatch.setattr(pysource, "_type_ref", type_ref)
        targets = [Target(file="alpha/api.py"), Target(file="beta/api.py")]
        result = synchronize(tmp_path, targets)
        assert result.complete
        assert result.validation_errors == [
            "alpha/api.py:2: cannot parse endpoint ping: tuple index out of range",
        ]
        assert result.targets[0].endpoint.name == ""
        assert result.targets[1].endpoint.name == "pong"

    def test_missing_package(self, tmp_path):
        result = synchronize(tmp_path, [Target(file="ghost/api.py")])
        assert result.complete
        assert result.validation_errors == ["ghost: package 'ghost' not found"]

    def test_cancelled_before_start(self, fixture_app):
        cancel = threading.Event()
        cancel.set()
        result = synchronize(fixture_app, _targets(), cancel=cancel)
        assert not result.complete
        assert result.validation_errors == ["synchronization cancelled"]
        assert all(t.endpoint.name == "" for t in result.targets)
