"""Tests for the field schema, path walking and the field mapper."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from projectsync.errors import ErrorKind, InvalidParameterError, RecordNotFoundError
from projectsync.fields import (
    FieldKind,
    FieldMapper,
    FieldSchema,
    FieldSpec,
    SyncResult,
    format_datetime,
    walk_path,
)
from projectsync.stores import InMemoryRecordStore


@pytest.fixture
def record_store():
    store = InMemoryRecordStore()
    store.create_record(1, title="original", license="GPL", created_at="keep")
    return store


# =============================================================================
# walk_path
# =============================================================================


class TestWalkPath:
    def test_nested_object(self):
        assert walk_path({"license": {"name": "MIT"}}, "license:name") == (True, "MIT")

    def test_null_in_path_is_missing(self):
        assert walk_path({"license": None}, "license:name") == (False, None)

    def test_missing_key(self):
        assert walk_path({"owner": {}}, "owner:login") == (False, None)

    def test_scalar_mid_path(self):
        assert walk_path({"license": "MIT"}, "license:name") == (False, None)

    def test_array_index(self):
        data = {"topics": [{"name": "cli"}, {"name": "sync"}]}
        assert walk_path(data, "topics:1:name") == (True, "sync")
        assert walk_path(data, "topics:5:name") == (False, None)

    def test_falsy_values_are_found(self):
        data = {"fork": False, "size": 0, "homepage": ""}
        assert walk_path(data, "fork") == (True, False)
        assert walk_path(data, "size") == (True, 0)
        assert walk_path(data, "homepage") == (True, "")

    def test_deep_path(self):
        data = {"a": {"b": {"c": {"d": {"e": 5}}}}}
        assert walk_path(data, "a:b:c:d:e") == (True, 5)


# =============================================================================
# format_datetime
# =============================================================================


class TestFormatDatetime:
    def test_iso_with_z_suffix(self):
        assert format_datetime("2017-01-05T17:23:45Z") == "2017-01-05 17:23:45"

    def test_iso_with_offset_converted_to_utc(self):
        assert format_datetime("2017-01-05T19:23:45+02:00") == "2017-01-05 17:23:45"

    def test_epoch_seconds(self):
        assert format_datetime(0) == "1970-01-01 00:00:00"
        assert format_datetime("86400") == "1970-01-02 00:00:00"

    def test_datetime_object(self):
        value = datetime(2020, 2, 29, 12, 0, 0, tzinfo=timezone.utc)
        assert format_datetime(value) == "2020-02-29 12:00:00"

    @pytest.mark.parametrize("value", ["not a date", "", None, True, {"x": 1}, 10**20])
    def test_unparsable_raises(self, value):
        with pytest.raises(InvalidParameterError):
            format_datetime(value)


# =============================================================================
# FieldSchema
# =============================================================================


class TestFieldSchema:
    def test_url_and_title_fields_resolved(self):
        schema = FieldSchema(
            [
                FieldSpec("url", is_url_field=True),
                FieldSpec("name", source_path="name", is_title_field=True),
                FieldSpec("notes"),
            ]
        )
        assert schema.url_field == "url"
        assert schema.title_field == "name"
        assert [spec.name for spec in schema.synced_fields] == ["name"]
        assert len(schema) == 3
        assert schema.get("notes").default == ""
        assert schema.get("missing") is None

    def test_no_url_field(self):
        assert FieldSchema([FieldSpec("a")]).url_field is None

    def test_duplicate_names_rejected(self):
        with pytest.raises(InvalidParameterError, match="Duplicate"):
            FieldSchema([FieldSpec("a"), FieldSpec("a")])

    def test_two_url_fields_rejected(self):
        with pytest.raises(InvalidParameterError, match="URL field"):
            FieldSchema(
                [FieldSpec("a", is_url_field=True), FieldSpec("b", is_url_field=True)]
            )

    def test_two_title_fields_rejected(self):
        with pytest.raises(InvalidParameterError, match="title field"):
            FieldSchema(
                [
                    FieldSpec("a", source_path="a", is_title_field=True),
                    FieldSpec("b", source_path="b", is_title_field=True),
                ]
            )

    def test_form_only_fields_are_not_synced(self):
        assert FieldSpec("website").is_synced is False
        assert FieldSpec("size", source_path="size").is_synced is True


# =============================================================================
# FieldMapper
# =============================================================================


class TestFieldMapper:
    def test_license_path(self, record_store):
        schema = FieldSchema([FieldSpec("license", default="", source_path="license:name")])
        result = FieldMapper(schema, record_store).apply_fields(
            1, {"license": {"name": "MIT"}}
        )
        assert result.success is True
        assert record_store.get_field(1, "license") == "MIT"

    def test_null_license_uses_default(self, record_store):
        schema = FieldSchema(
            [FieldSpec("license", default="none", source_path="license:name")]
        )
        result = FieldMapper(schema, record_store).apply_fields(1, {"license": None})
        assert result.success is True
        assert result.fields_failed == []
        assert record_store.get_field(1, "license") == "none"

    def test_form_only_fields_untouched(self, record_store):
        schema = FieldSchema([FieldSpec("website", default="x")])
        FieldMapper(schema, record_store).apply_fields(1, {"website": "y"})
        assert record_store.get_field(1, "website") is None

    def test_datetime_field_reformatted(self, record_store):
        schema = FieldSchema(
            [FieldSpec("created_at", default=0, source_path="created_at", kind=FieldKind.DATETIME)]
        )
        FieldMapper(schema, record_store).apply_fields(
            1, {"created_at": "2017-01-05T17:23:45Z"}
        )
        assert record_store.get_field(1, "created_at") == "2017-01-05 17:23:45"

    def test_absent_datetime_writes_default(self, record_store):
        schema = FieldSchema(
            [FieldSpec("created_at", default=0, source_path="created_at", kind=FieldKind.DATETIME)]
        )
        FieldMapper(schema, record_store).apply_fields(1, {})
        assert record_store.get_field(1, "created_at") == 0

    def test_unparsable_datetime_is_field_failure(self, record_store):
        schema = FieldSchema(
            [
                FieldSpec("created_at", default=0, source_path="created_at", kind=FieldKind.DATETIME),
                FieldSpec("size", default=0, source_path="size"),
            ]
        )
        result = FieldMapper(schema, record_store).apply_fields(
            1, {"created_at": "garbage", "size": 12}
        )
        assert result.success is True
        assert result.fields_failed == ["created_at"]
        assert result.fields_written == ["size"]
        assert record_store.get_field(1, "created_at") == "keep"
        assert record_store.get_field(1, "size") == 12

    def test_custom_field_goes_to_hook(self, record_store):
        hook = MagicMock()
        schema = FieldSchema(
            [FieldSpec("description", source_path="description", kind=FieldKind.CUSTOM)]
        )
        FieldMapper(schema, record_store, hook).apply_fields(
            1, {"description": "A tool"}, context="scheduled"
        )
        hook.on_custom_field.assert_called_once_with(1, "description", "A tool", "scheduled")
        assert record_store.get_field(1, "description") is None

    def test_custom_field_without_hook_fails_field(self, record_store):
        schema = FieldSchema(
            [FieldSpec("description", source_path="description", kind=FieldKind.CUSTOM)]
        )
        result = FieldMapper(schema, record_store).apply_fields(1, {"description": "x"})
        assert result.fields_failed == ["description"]

    def test_title_updated_when_not_default(self, record_store):
        schema = FieldSchema(
            [FieldSpec("name", default="", source_path="name", is_title_field=True)]
        )
        FieldMapper(schema, record_store).apply_fields(1, {"name": "windows-desktop-switcher"})
        assert record_store.get_title(1) == "windows-desktop-switcher"
        assert record_store.get_field(1, "name") == "windows-desktop-switcher"

    def test_title_kept_when_value_is_default(self, record_store):
        schema = FieldSchema(
            [FieldSpec("name", default="", source_path="name", is_title_field=True)]
        )
        FieldMapper(schema, record_store).apply_fields(1, {})
        assert record_store.get_title(1) == "original"

    def test_store_error_does_not_abort(self):
        store = MagicMock()
        store.upsert_field.side_effect = [RecordNotFoundError("gone"), None]
        schema = FieldSchema(
            [FieldSpec("a", source_path="a"), FieldSpec("b", source_path="b")]
        )
        result = FieldMapper(schema, store).apply_fields(1, {"a": 1, "b": 2})
        assert result.success is True
        assert result.fields_failed == ["a"]
        assert result.fields_written == ["b"]
        assert store.upsert_field.call_count == 2


def test_sync_result_failure():
    result = SyncResult.failure(InvalidParameterError("bad", url="x"))
    assert result.success is False
    assert result.error_kind is ErrorKind.INVALID_PARAMETER
    assert result.context["url"] == "x"
    assert result.to_dict()["error_kind"] == "invalid_parameter"
