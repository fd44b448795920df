import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../..')))

from autofill_engine.tools.pii_scrubber import scrub_all, scrub_pii


class TestPiiScrubber(unittest.TestCase):
    """Tests for scrub_pii."""

    def test_email(self):
        self.assertEqual(scrub_pii("Write to jane.doe+jobs@example.co.uk today"), "Write to [EMAIL] today")

    def test_ssn_before_phone(self):
        self.assertEqual(scrub_pii("SSN: 123-45-6789"), "SSN: [SSN]")

    def test_phone(self):
        self.assertEqual(scrub_pii("Call 415-555-1234 after 5"), "Call [PHONE] after 5")

    def test_plain_text_unchanged(self):
        self.assertEqual(scrub_pii("Years of experience"), "Years of experience")

    def test_empty(self):
        self.assertEqual(scrub_pii(""), "")
        self.assertEqual(scrub_pii(None), "")

    def test_scrub_all(self):
        self.assertEqual(scrub_all(["a@b.io", "Yes"]), ["[EMAIL]", "Yes"])


if __name__ == "__main__":
    unittest.main()
