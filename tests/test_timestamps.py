from datetime import date

from chat_harvester.timestamps import (
    RawDate,
    extract_date,
    is_before_reference,
    is_reference_day,
    resolve_reading,
    split_prefix,
    time_key,
    time_prefix,
)

REF = date(2026, 1, 23)

DATE_CASES = [
    # raw timestamp, expected RawDate
    ("19:33, 23.1.2026", RawDate(23, 1, 2026)),
    ("7:33 PM, 1/23/2026", RawDate(1, 23, 2026)),
    ("08:15, 23/01/26", RawDate(23, 1, 2026)),
    ("08:15, 23.1.", RawDate(23, 1, None)),
    ("no date here", None),
    ("", None),
]

TIME_CASES = [
    ("19:33, 23.1.2026", "19:33"),
    ("9:03, 23.1.2026", "09:03"),
    ("7:05 PM, 1/23/2026", "19:05"),
    ("12:10 AM, 1/23/2026", "00:10"),
    ("12:10 PM, 1/23/2026", "12:10"),
]


def test_extract_date():
    for raw, expected in DATE_CASES:
        assert extract_date(raw) == expected, raw


def test_both_field_orders_recognise_the_reference_day():
    assert is_reference_day(extract_date("19:33, 23.1.2026"), REF)
    assert is_reference_day(extract_date("7:33 PM, 1/23/2026"), REF)
    assert not is_reference_day(extract_date("19:33, 22.1.2026"), REF)
    assert not is_reference_day(None, REF)


def test_ambiguous_day_month_matches_either_reading():
    raw = RawDate(5, 6, 2026)
    assert is_reference_day(raw, date(2026, 6, 5))
    assert is_reference_day(raw, date(2026, 5, 6))
    # never "before" a day it could be
    assert not is_before_reference(raw, date(2026, 6, 5))


def test_before_reference():
    assert is_before_reference(extract_date("23:59, 22.1.2026"), REF)
    assert not is_before_reference(extract_date("00:01, 24.1.2026"), REF)
    assert is_before_reference(extract_date("10:00, 23.1.2025"), REF)
    assert not is_before_reference(None, REF)


def test_missing_year_compares_within_reference_year():
    assert is_reference_day(RawDate(23, 1), REF)
    assert is_before_reference(RawDate(22, 1), REF)
    # 29.02 has no reading in a non-leap reference year
    assert not is_reference_day(RawDate(29, 2), date(2026, 3, 1))


def test_missing_year_after_the_reference_day_is_last_year():
    new_year = date(2026, 1, 5)
    assert is_before_reference(RawDate(20, 12), new_year)
    assert not is_reference_day(RawDate(20, 12), new_year)
    assert resolve_reading(RawDate(20, 12), new_year) == date(2025, 12, 20)
    assert is_reference_day(RawDate(5, 1), new_year)


def test_reading_is_chosen_relative_to_the_reference_day():
    may_first = date(2026, 5, 1)
    # 5/1 reads as 5 January or 1 May; the reference day wins
    assert resolve_reading(RawDate(5, 1, 2026), may_first) == may_first
    assert resolve_reading(RawDate(4, 30, 2026), may_first) == date(2026, 4, 30)
    # 3/4 reads as 3 April or 4 March; the latest one not after the reference day
    assert resolve_reading(RawDate(3, 4, 2026), may_first) == date(2026, 4, 3)
    # both readings in the future: the earliest
    assert resolve_reading(RawDate(6, 7, 2026), may_first) == date(2026, 6, 7)
    assert resolve_reading(None, may_first) is None


def test_time_keys_are_24h():
    for raw, expected in TIME_CASES:
        assert time_key(raw) == expected, raw


def test_time_prefix_keeps_rendered_form():
    assert time_prefix("19:33, 23.1.2026") == "19:33"
    assert time_prefix("7:05 PM, 1/23/2026") == "7:05 PM"
    assert time_prefix("") is None


def test_split_prefix():
    assert split_prefix("[19:33, 23.1.2026] Dana Levi: ") == ("19:33, 23.1.2026", "Dana Levi")
    assert split_prefix("[19:33, 23.1.2026] ") == ("19:33, 23.1.2026", None)
    assert split_prefix(None) == ("", None)
