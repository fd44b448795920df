import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../..')))

from autofill_engine.utils.json_parsing import parse_json_lenient


class TestParseJsonLenient(unittest.TestCase):
    """Tests for lenient JSON recovery."""

    def test_plain_json(self):
        self.assertEqual(parse_json_lenient('[{"index": 0}]'), [{"index": 0}])

    def test_markdown_fence(self):
        text = 'Here you go:\n```json\n{"results": []}\n```\nAnything else?'
        self.assertEqual(parse_json_lenient(text), {"results": []})

    def test_trailing_commentary(self):
        text = '[{"index": 0, "type": "EMAIL"}] I hope this helps.'
        self.assertEqual(parse_json_lenient(text), [{"index": 0, "type": "EMAIL"}])

    def test_trailing_commas(self):
        self.assertEqual(parse_json_lenient('{"a": [1, 2,],}'), {"a": [1, 2]})

    def test_single_quotes(self):
        self.assertEqual(parse_json_lenient("{'shouldAdd': true}"), {"shouldAdd": True})

    def test_truncated_response(self):
        text = '[{"index": 0, "type": "EMAIL"}, {"index": 1, "type": "GPA"'
        self.assertEqual(parse_json_lenient(text), [{"index": 0, "type": "EMAIL"}, {"index": 1, "type": "GPA"}])

    def test_smart_quotes_and_missing_closers(self):
        text = 'Decision: {“shouldAdd”: true, “reason”: “two jobs stored”'
        self.assertEqual(parse_json_lenient(text), {"shouldAdd": True, "reason": "two jobs stored"})

    def test_unrecoverable_returns_fallback(self):
        self.assertIsNone(parse_json_lenient("no structure at all"))
        self.assertEqual(parse_json_lenient("", fallback={}), {})
        self.assertEqual(parse_json_lenient(None, fallback=[]), [])


if __name__ == "__main__":
    unittest.main()
