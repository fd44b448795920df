import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../..')))

from autofill_engine.core.answer_resolver import AnswerResolver
from autofill_engine.core.answer_store import InMemoryAnswerStore
from autofill_engine.core.fill_planner import FillPlanner
from autofill_engine.core.models import AnswerValue, Candidate, ClassifiedField, FieldDescriptor
from autofill_engine.core.taxonomy import Taxonomy


def classified(index, label, field_type, score, options=None, tag="input"):
    field = FieldDescriptor(index=index, label_text=label, options=list(options or []), tag_name=tag)
    return ClassifiedField(field=field, candidates=[Candidate(field_type, score, ["test"])])


class TestFillPlanner(unittest.TestCase):
    """Tests for bucket assignment in FillPlanner."""

    def setUp(self):
        self.answers = InMemoryAnswerStore()
        self.planner = FillPlanner(AnswerResolver(self.answers))

    def test_confident_field_becomes_plan(self):
        self.answers.save(AnswerValue.create(Taxonomy.EMAIL, "jane@example.com"))

        result = self.planner.build([classified(0, "Email", Taxonomy.EMAIL, 0.95)])

        self.assertEqual(len(result.plans), 1)
        self.assertEqual(result.plans[0].value, "jane@example.com")
        self.assertEqual(result.plans[0].field_type, Taxonomy.EMAIL)
        self.assertEqual(result.plans[0].confidence, 0.95)

    def test_sensitive_type_never_planned(self):
        self.answers.save(AnswerValue.create(Taxonomy.EEO_GENDER, "Female"))

        result = self.planner.build([classified(4, "Gender", Taxonomy.EEO_GENDER, 0.99,
                                                ["Female", "Male"], "select")])

        self.assertEqual(result.plans, [])
        self.assertEqual(result.suggestions, [])
        self.assertEqual(len(result.sensitive), 1)
        self.assertEqual(result.sensitive[0].reason, "EEO_GENDER requires manual selection")
        self.assertEqual(result.sensitive[0].answers[0].value, "Female")

    def test_autofill_opt_out_goes_to_sensitive(self):
        answer = AnswerValue.create(Taxonomy.EMAIL, "private@example.com")
        answer.autofill_allowed = False
        self.answers.save(answer)

        result = self.planner.build([classified(0, "Email", Taxonomy.EMAIL, 0.95)])

        self.assertEqual(result.plans, [])
        self.assertEqual([s.field.index for s in result.sensitive], [0])

    def test_low_confidence_becomes_suggestion(self):
        self.answers.save(AnswerValue.create(Taxonomy.EMAIL, "jane@example.com"))

        result = self.planner.build([classified(0, "Contact", Taxonomy.EMAIL, 0.6)])

        self.assertEqual(result.plans, [])
        self.assertEqual(result.suggestions[0].reason, "confidence 0.60 below 0.75")

    def test_suggestion_answers_are_capped(self):
        for i in range(5):
            self.answers.save(AnswerValue.create(Taxonomy.CITY, f"City {i}", now=float(i)))

        result = self.planner.build([classified(0, "City", Taxonomy.CITY, 0.5)])

        self.assertEqual([a.value for a in result.suggestions[0].answers], ["City 4", "City 3", "City 2"])

    def test_skip_reasons(self):
        result = self.planner.build([
            classified(0, "Favorite color", Taxonomy.UNKNOWN, 0.0),
            classified(1, "Email", Taxonomy.EMAIL, 0.9),
        ])
        self.assertEqual(result.skipped, {0: "classified UNKNOWN", 1: "no stored answer for EMAIL"})

    def test_phone_country_code_stripped_when_form_has_code_field(self):
        self.answers.save(AnswerValue.create(Taxonomy.PHONE, "+1 4155551234"))

        result = self.planner.build([
            classified(2, "Country code", Taxonomy.COUNTRY_CODE, 0.95,
                       ["United States (+1)", "China (+86)"], "select"),
            classified(3, "Phone", Taxonomy.PHONE, 0.9),
        ])

        values = {p.field.index: p.value for p in result.plans}
        self.assertEqual(values, {2: "United States (+1)", 3: "4155551234"})

    def test_phone_kept_whole_without_code_field(self):
        self.answers.save(AnswerValue.create(Taxonomy.PHONE, "+1 4155551234"))
        result = self.planner.build([classified(3, "Phone", Taxonomy.PHONE, 0.9)])
        self.assertEqual(result.plans[0].value, "+1 4155551234")

    def test_plans_keep_scan_order(self):
        self.answers.save(AnswerValue.create(Taxonomy.EMAIL, "jane@example.com"))
        self.answers.save(AnswerValue.create(Taxonomy.CITY, "Oakland"))

        result = self.planner.build([
            classified(7, "City", Taxonomy.CITY, 0.9),
            classified(2, "Email", Taxonomy.EMAIL, 0.9),
        ])

        self.assertEqual([p.field.index for p in result.plans], [7, 2])


if __name__ == "__main__":
    unittest.main()
