from datetime import datetime, timezone

from app.utils import (
    clean_id,
    id_sort_key,
    normalize_search_text,
    parse_timestamp,
    title_matches,
    unique_ids,
)


def test_normalize_search_text_folds_width_case_and_spaces():
    assert normalize_search_text("  ＨＥＲＯ　 Academia ") == "hero academia"


def test_normalize_search_text_handles_none():
    assert normalize_search_text(None) == ""


def test_title_matches_is_substring_and_rejects_blank_query():
    assert title_matches("Hero Academia", "hero")
    assert title_matches("Hero  Academia", "ｏ ａｃａ")
    assert not title_matches("One Piece", "hero")
    assert not title_matches("One Piece", "   ")


def test_clean_id_accepts_strings_and_integers_only():
    assert clean_id(" 42 ") == "42"
    assert clean_id(42) == "42"
    assert clean_id(True) == ""
    assert clean_id(None) == ""
    assert clean_id(4.2) == ""


def test_unique_ids_keeps_first_seen_order():
    assert unique_ids(["b", 1, "", "b", " 1 ", None, "a"]) == ["b", "1", "a"]


def test_parse_timestamp_treats_naive_values_as_utc():
    parsed = parse_timestamp("2024-05-01T10:00:00")
    assert parsed == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2024-05-01T10:00:00Z") == parsed
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_id_sort_key_orders_numbers_numerically():
    assert sorted(["10", "9", "b", "100"], key=id_sort_key) == ["9", "10", "100", "b"]
