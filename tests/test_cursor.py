import unittest
from datetime import datetime, timedelta, timezone

from trade_ingestion.cursor import (
    CursorState,
    OrdinalCursor,
    PaginatedCursor,
    TimestampCursor,
    parse_cursor,
)
from trade_ingestion.errors import StateParseError


class TestCursorEncoding(unittest.TestCase):
    def test_ordinal_encoding(self):
        self.assertEqual(OrdinalCursor(18).serialize(), '{"current":18}')
        self.assertEqual(OrdinalCursor.parse('{"current": 18}'), OrdinalCursor(18))

    def test_timestamp_encoding_is_second_precision_utc(self):
        c = TimestampCursor(datetime(2019, 1, 1, 1, 1, 1, 987654, tzinfo=timezone.utc))
        self.assertEqual(c.serialize(), "2019-01-01T01:01:01Z")

    def test_timestamp_normalizes_offsets_and_naive_values(self):
        tokyo = timezone(timedelta(hours=9))
        self.assertEqual(
            TimestampCursor(datetime(2019, 1, 1, 10, 1, 1, tzinfo=tokyo)),
            TimestampCursor(datetime(2019, 1, 1, 1, 1, 1)),
        )

    def test_paginated_encoding(self):
        c = PaginatedCursor(TimestampCursor(datetime(2019, 1, 1, tzinfo=timezone.utc)), 500)
        self.assertEqual(c.serialize(), '{"id":"2019-01-01T00:00:00Z","num":500}')
        o = PaginatedCursor(OrdinalCursor(7), 2)
        self.assertEqual(o.serialize(), '{"id":{"current":7},"num":2}')

    def test_round_trip_every_variant(self):
        cursors = [
            OrdinalCursor(0),
            OrdinalCursor(764677430),
            TimestampCursor(datetime(2011, 12, 8, 4, 32, 55, tzinfo=timezone.utc)),
            PaginatedCursor(TimestampCursor(datetime(2019, 1, 1, 1, 1, 1, tzinfo=timezone.utc)), 1000),
            PaginatedCursor(OrdinalCursor(42), 0),
        ]
        for c in cursors:
            with self.subTest(cursor=c):
                self.assertEqual(type(c).parse(c.serialize()), c)
                self.assertEqual(parse_cursor(c.serialize(), c), c)

    def test_parse_accepts_trailing_newline(self):
        self.assertEqual(
            TimestampCursor.parse("2019-01-01T01:01:01Z\n"),
            TimestampCursor(datetime(2019, 1, 1, 1, 1, 1, tzinfo=timezone.utc)),
        )

    def test_malformed_input_raises_state_parse_error(self):
        cases = [
            (OrdinalCursor, "garbage"),
            (OrdinalCursor, '{"current": "18"}'),
            (OrdinalCursor, '{"current": true}'),
            (OrdinalCursor, "[1, 2]"),
            (TimestampCursor, ""),
            (TimestampCursor, "yesterday"),
            (PaginatedCursor, '{"id": "2019-01-01T00:00:00Z"}'),
            (PaginatedCursor, '{"id": "2019-01-01T00:00:00Z", "num": -1}'),
            (PaginatedCursor, '{"id": 5, "num": 0}'),
            (TimestampCursor, "9999-12-31T23:59:59-01:00"),
            (PaginatedCursor, '{"id": "9999-12-31T23:59:59-01:00", "num": 0}'),
            (OrdinalCursor, "[" * 200000),
            (PaginatedCursor, "{\"id\": " * 100000),
        ]
        for cls, text in cases:
            with self.subTest(cls=cls.__name__, text=text):
                with self.assertRaises(StateParseError):
                    cls.parse(text)


class TestCursorOrdering(unittest.TestCase):
    def test_paginated_compares_inner_then_offset(self):
        t1 = TimestampCursor(datetime(2019, 1, 1, 0, 0, 1, tzinfo=timezone.utc))
        t2 = TimestampCursor(datetime(2019, 1, 1, 0, 0, 2, tzinfo=timezone.utc))
        self.assertLess(PaginatedCursor(t1, 999), PaginatedCursor(t2, 0))
        self.assertLess(PaginatedCursor(t1, 0), PaginatedCursor(t1, 500))
        self.assertLessEqual(PaginatedCursor(t2, 0), PaginatedCursor(t2, 0))

    def test_variants_do_not_compare(self):
        with self.assertRaises(TypeError):
            OrdinalCursor(1) < TimestampCursor(datetime(2019, 1, 1, tzinfo=timezone.utc))

    def test_paginated_rejects_negative_offset_and_nesting(self):
        with self.assertRaises(ValueError):
            PaginatedCursor(OrdinalCursor(1), -1)
        with self.assertRaises(TypeError):
            PaginatedCursor(PaginatedCursor(OrdinalCursor(1), 0), 0)


class TestCursorState(unittest.TestCase):
    def test_update_replaces_position(self):
        state = CursorState(OrdinalCursor(10))
        state.update(OrdinalCursor(12))
        self.assertEqual(state.current(), OrdinalCursor(12))
        self.assertEqual(state.serialize(), '{"current":12}')

    def test_update_rejects_other_variant(self):
        state = CursorState(OrdinalCursor(10))
        with self.assertRaises(TypeError):
            state.update(TimestampCursor(datetime(2019, 1, 1, tzinfo=timezone.utc)))

    def test_parse_uses_variant_of_template(self):
        state = CursorState.parse('{"current":18}', OrdinalCursor(0))
        self.assertEqual(state.current(), OrdinalCursor(18))


if __name__ == "__main__":
    unittest.main()
