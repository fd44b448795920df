import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../..')))

from autofill_engine.core.answer_store import InMemoryAnswerStore
from autofill_engine.core.models import AnswerValue, FieldDescriptor, ObservationStatus
from autofill_engine.core.observation_recorder import (
    ObservationRecorder,
    is_partial_value,
    question_key_for,
    site_key_for,
    widget_signature_for,
)
from autofill_engine.core.taxonomy import Taxonomy

URL = "https://jobs.example.com/apply/123"


class TestHelpers(unittest.TestCase):

    def test_is_partial_value(self):
        self.assertTrue(is_partial_value("2023-09", "2023-09-01"))
        self.assertFalse(is_partial_value("2023-09-01", "2023-09"))
        self.assertTrue(is_partial_value(" Jan", "jane"))
        self.assertFalse(is_partial_value("jane", "jane"))
        self.assertFalse(is_partial_value("", "jane"))
        self.assertFalse(is_partial_value("joe", "jane"))

    def test_site_key(self):
        self.assertEqual(site_key_for(URL), "jobs.example.com")
        self.assertEqual(site_key_for(""), "unknown")

    def test_question_key_ignores_value_but_not_type(self):
        field = FieldDescriptor(index=0, label_text="Email", attributes={"name": "email"})
        moved = FieldDescriptor(index=7, label_text="Email", attributes={"name": "email"})
        self.assertEqual(question_key_for(field, Taxonomy.EMAIL), question_key_for(moved, Taxonomy.EMAIL))
        self.assertNotEqual(question_key_for(field, Taxonomy.EMAIL), question_key_for(field, Taxonomy.PHONE))

    def test_widget_signature(self):
        self.assertEqual(widget_signature_for(FieldDescriptor(index=0, tag_name="SELECT")), "select:text")
        self.assertEqual(widget_signature_for(FieldDescriptor(index=0, attributes={"type": "email"})),
                         "input:email")


class TestObservationRecorder(unittest.TestCase):
    """Tests for the pending/commit lifecycle."""

    def setUp(self):
        self.store = InMemoryAnswerStore()
        self.recorder = ObservationRecorder(self.store, clock=lambda: 100.0)
        self.email = FieldDescriptor(index=1, label_text="Email", attributes={"type": "email"})

    def test_typing_extends_one_pending_entry(self):
        first = self.recorder.observe(self.email, "jane@", URL)
        second = self.recorder.observe(self.email, "jane@example.com", URL)

        self.assertIs(first, second)
        self.assertEqual(second.raw_value, "jane@example.com")
        self.assertEqual(second.classified_type, Taxonomy.EMAIL)
        self.assertEqual(second.site_key, "jobs.example.com")
        self.assertEqual(len(self.recorder.pending), 1)
        self.assertEqual(len(self.store), 0)

    def test_ignored_values(self):
        self.assertIsNone(self.recorder.observe(self.email, "   "))
        self.recorder.observe(self.email, "jane@example.com")
        self.assertIsNone(self.recorder.observe(self.email, "jane@example.com"))

    def test_replacement_starts_new_entry(self):
        first = self.recorder.observe(self.email, "jane@example.com")
        second = self.recorder.observe(self.email, "sam@example.com")
        self.assertIsNot(first, second)
        self.assertEqual(self.recorder.pending[1].raw_value, "sam@example.com")

    def test_commit_saves_new_answer(self):
        committed_pairs = []
        self.recorder.on_commit(lambda observation, answer: committed_pairs.append((observation, answer)))
        self.recorder.observe(self.email, "jane@example.com", URL)

        observations = self.recorder.commit_all()

        self.assertEqual(len(observations), 1)
        answer = self.store.find_by_value(Taxonomy.EMAIL, "jane@example.com")
        self.assertEqual(observations[0].answer_id, answer.id)
        self.assertEqual(answer.created_at, 100.0)
        self.assertEqual(observations[0].widget_signature, "input:email")
        self.assertEqual(committed_pairs, [(observations[0], answer)])
        self.assertEqual(self.recorder.pending, {})

    def test_commit_reuses_matching_answer(self):
        existing = self.store.save(AnswerValue.create(Taxonomy.EMAIL, "jane@example.com"))
        self.recorder.observe(self.email, "Jane@Example.com")

        observations = self.recorder.commit_all()

        self.assertEqual(observations[0].answer_id, existing.id)
        self.assertEqual(len(self.store), 1)

    def test_unknown_entries_are_discarded_on_commit(self):
        pending = self.recorder.observe(FieldDescriptor(index=3, label_text="Favorite color"), "blue")

        self.assertEqual(self.recorder.commit_all(), [])
        self.assertEqual(pending.status, ObservationStatus.DISCARDED)
        self.assertEqual(len(self.store), 0)

    def test_discard_all(self):
        seen = []
        self.recorder.on_pending(seen.append)
        pending = self.recorder.observe(self.email, "jane@example.com")

        self.assertEqual(self.recorder.discard_all(), 1)
        self.assertEqual(pending.status, ObservationStatus.DISCARDED)
        self.assertEqual(seen, [pending])
        self.assertEqual(self.recorder.commit_all(), [])
        self.assertEqual(len(self.store), 0)


if __name__ == "__main__":
    unittest.main()
