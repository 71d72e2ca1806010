# =============================================================================
# tests/test_utils.py - Shared Utility Tests
# =============================================================================
# Run with: pytest tests/test_utils.py -v
# =============================================================================

from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from lib.instagram_graph import MAX_CAPTION_LENGTH, build_caption
from lib.utils import (
    ApplicationError,
    decode_state,
    encode_state,
    escape_ilike,
    format_time_ago,
    ilike_any,
    normalize_uuid,
    parse_timestamp,
    valid_uuids,
)


class TestNormalizeUuid:
    def test_uuid_object_becomes_string(self):
        value = UUID("11111111-1111-1111-1111-111111111111")
        assert normalize_uuid(value) == "11111111-1111-1111-1111-111111111111"

    def test_string_passes_through(self):
        assert normalize_uuid("abc") == "abc"

    def test_valid_uuids_keeps_only_parseable_values(self):
        value = UUID("11111111-1111-1111-1111-111111111111")

        assert valid_uuids([value, "not-a-uuid", "22222222-2222-2222-2222-22222222222A", ""]) == [
            "11111111-1111-1111-1111-111111111111",
            "22222222-2222-2222-2222-22222222222a",
        ]


class TestTimestamps:
    def test_parse_trailing_z(self):
        parsed = parse_timestamp("2024-01-15T10:00:00Z")
        assert parsed == datetime(2024, 1, 15, 10, tzinfo=timezone.utc)

    def test_parse_naive_is_utc(self):
        assert parse_timestamp("2024-01-15T10:00:00").tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_parse_invalid_returns_none(self, value):
        assert parse_timestamp(value) is None

    def test_format_time_ago_buckets(self):
        now = datetime(2024, 1, 15, 12, tzinfo=timezone.utc)

        assert format_time_ago(now - timedelta(minutes=5), now=now) == "5m ago"
        assert format_time_ago(now - timedelta(hours=3), now=now) == "3h ago"
        assert format_time_ago(now - timedelta(days=2), now=now) == "2d ago"

    def test_format_time_ago_future_clamps_to_zero(self):
        now = datetime(2024, 1, 15, 12, tzinfo=timezone.utc)
        assert format_time_ago(now + timedelta(minutes=5), now=now) == "0m ago"

    def test_format_time_ago_empty(self):
        assert format_time_ago(None) == ""


class TestIlike:
    def test_escapes_wildcards(self):
        assert escape_ilike("50%_off") == "50\\%\\_off"

    def test_strips_filter_delimiters(self):
        assert escape_ilike("a,b(c)") == "a b c"

    def test_ilike_any_builds_or_filter(self):
        assert ilike_any(["title", "description"], "launch") == (
            "title.ilike.%launch%,description.ilike.%launch%"
        )


class TestOAuthState:
    def test_round_trip(self):
        state = encode_state({"user_id": "u1", "ts": 1})
        assert decode_state(state) == {"user_id": "u1", "ts": 1}

    def test_accepts_url_safe_alphabet(self):
        state = encode_state({"user_id": "ÿÿÿ>>>???"})
        url_safe = state.replace("+", "-").replace("/", "_").rstrip("=")
        assert decode_state(url_safe)["user_id"] == "ÿÿÿ>>>???"

    @pytest.mark.parametrize("state", ["%%%", encode_state({"a": 1})[:-4] + "!!!!"])
    def test_garbage_raises(self, state):
        with pytest.raises(ApplicationError) as exc_info:
            decode_state(state)
        assert exc_info.value.code == "INVALID_STATE"


class TestBuildCaption:
    def test_joins_body_tags_and_cta(self):
        caption = build_caption("New drop!", ["#spring", "launch", "  ", "#"], "Shop now")
        assert caption == "New drop!\n\n#spring #launch\n\nShop now"

    def test_body_only(self):
        assert build_caption("  Hello  ") == "Hello"

    def test_truncates_long_caption(self):
        caption = build_caption("x" * (MAX_CAPTION_LENGTH + 100))
        assert len(caption) == MAX_CAPTION_LENGTH
        assert caption.endswith("...")
