"""Tests for session keys and component custom_id encoding."""

import pytest

from tunebot.utils.custom_ids import (
    ComponentAction,
    build_custom_id,
    make_session_key,
    parse_custom_id,
)


class TestSessionKey:
    def test_format(self):
        assert make_session_key(1, 2, 3) == "1-2-3"

    def test_deterministic(self):
        assert make_session_key("10", 20, 30) == make_session_key(10, "20", "30")

    def test_any_component_changes_key(self):
        base = make_session_key(1, 2, 3)
        assert make_session_key(9, 2, 3) != base
        assert make_session_key(1, 9, 3) != base
        assert make_session_key(1, 2, 9) != base


class TestCustomIds:
    @pytest.mark.parametrize("action", list(ComponentAction))
    def test_prefix_stripped_leaves_exact_key(self, action):
        key = make_session_key(111, 222, 333)
        parsed = parse_custom_id(build_custom_id(action, key))
        assert parsed.action is action
        assert parsed.key == key

    def test_known_prefixes(self):
        assert build_custom_id(ComponentAction.SELECT, "k") == "play_select:k"
        assert build_custom_id(ComponentAction.CANCEL, "k") == "play_cancel:k"

    @pytest.mark.parametrize("custom_id", [None, "", "other:1-2-3", "play_select:", "play_add20:1-2-3"])
    def test_unrecognized_parses_to_none(self, custom_id):
        assert parse_custom_id(custom_id) is None

    def test_related_amounts(self):
        assert ComponentAction.ADD_5.related_amount == 5
        assert ComponentAction.ADD_10.related_amount == 10
        assert ComponentAction.SHUFFLE.related_amount == 0
