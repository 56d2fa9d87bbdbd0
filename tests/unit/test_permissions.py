"""
Tests for API key permission parsing.

**Feature: docscope-api-key-permissions**
"""

import pytest
from hypothesis import given, settings, strategies as st

from docscope.core.permissions import (
    ALL,
    FILES_READ,
    TAGS_READ,
    PermissionParseError,
    TagPermission,
    allowed_tag_ids,
    can_read_files,
    format_permission,
    format_permissions,
    parse_permission,
    parse_permissions,
)


class TestParse:
    @pytest.mark.parametrize(
        "token,expected",
        [
            ("*", ALL),
            ("all", ALL),
            ("files:read", FILES_READ),
            ("tags:read", TAGS_READ),
            ("tag:12", TagPermission(12)),
            ("  tag:3 ", TagPermission(3)),
        ],
    )
    def test_single_tokens(self, token, expected):
        assert parse_permission(token) == expected

    @pytest.mark.parametrize("token", ["files:write", "tag:", "tag:abc", "tag:-1", "admin"])
    def test_invalid_tokens(self, token):
        with pytest.raises(PermissionParseError):
            parse_permission(token)

    def test_comma_list_ignores_blank_items(self):
        assert parse_permissions("files:read, ,tag:3,") == [FILES_READ, TagPermission(3)]

    def test_empty_string(self):
        assert parse_permissions("") == []
        assert parse_permissions(None) == []

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_permissions("files:read,bogus")


class TestFormat:
    def test_format_list(self):
        perms = [ALL, FILES_READ, TAGS_READ, TagPermission(9)]

        assert format_permissions(perms) == "*,files:read,tags:read,tag:9"

    def test_format_rejects_non_permission(self):
        with pytest.raises(TypeError):
            format_permission("files:read")


class TestHelpers:
    def test_allowed_tag_ids(self):
        assert allowed_tag_ids([TagPermission(1), TagPermission(2), FILES_READ]) == {1, 2}

    def test_all_is_unrestricted(self):
        assert allowed_tag_ids([ALL, TagPermission(1)]) is None

    def test_no_tags_is_unrestricted(self):
        assert allowed_tag_ids([FILES_READ]) is None

    def test_can_read_files(self):
        assert can_read_files([ALL])
        assert can_read_files([FILES_READ])
        assert can_read_files([TagPermission(4)])
        assert not can_read_files([TAGS_READ])
        assert not can_read_files([])


permission_strategy = st.one_of(
    st.just(ALL),
    st.just(FILES_READ),
    st.just(TAGS_READ),
    st.builds(TagPermission, st.integers(min_value=0, max_value=10**9)),
)


@given(perms=st.lists(permission_strategy, max_size=10))
@settings(max_examples=100, deadline=None)
def test_serialized_permissions_parse_back(perms):
    """*For any* permission list, formatting then parsing yields the same list."""
    assert parse_permissions(format_permissions(perms)) == perms
