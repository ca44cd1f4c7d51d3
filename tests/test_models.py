from api_doc_sync.sync.models import (
    EndpointRecord,
    FieldRecord,
    PathSegment,
    SegmentType,
    SyncResult,
    Target,
    TypeRecord,
    Visibility,
)


class TestTarget:
    def test_create_minimal_target(self):
        t = Target(file="users/api.py")
        assert t.service == ""
        assert t.source is None
        assert t.endpoint == EndpointRecord()

    def test_targets_do_not_share_records(self):
        a = Target(file="a.py")
        b = Target(file="b.py")
        a.endpoint.types.append(TypeRecord(name="Foo"))
        assert b.endpoint.types == []


class TestEndpointRecord:
    def test_defaults(self):
        ep = EndpointRecord()
        assert ep.visibility == Visibility.PRIVATE
        assert ep.language == "PYTHON"
        assert ep.request_type is None
        assert ep.errors == []

    def test_has_type(self):
        ep = EndpointRecord(types=[TypeRecord(name="User")])
        assert ep.has_type("User")
        assert not ep.has_type("Address")

    def test_serialization_roundtrip(self):
        ep = EndpointRecord(
            name="get_user",
            method="GET",
            visibility=Visibility.PUBLIC,
            path=[
                PathSegment(type=SegmentType.LITERAL, value="users"),
                PathSegment(type=SegmentType.PARAM, value="id", value_type="int", doc="user id"),
            ],
            types=[TypeRecord(name="User", fields=[FieldRecord(name="id", type="int")])],
        )
        data = ep.model_dump(mode="json")
        assert data["visibility"] == "public"
        assert data["path"][1]["type"] == "param"
        ep2 = EndpointRecord(**data)
        assert ep2 == ep


class TestSyncResult:
    def test_complete_by_default(self):
        result = SyncResult(targets=[])
        assert result.complete is True
        assert result.validation_errors == []
