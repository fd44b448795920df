import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../..')))

from autofill_engine.core.candidate_merger import NO_MATCH_REASON, best_known_type, merge_candidates
from autofill_engine.core.models import Candidate
from autofill_engine.core.taxonomy import Taxonomy


class TestCandidateMerger(unittest.TestCase):
    """Tests for merge_candidates."""

    def setUp(self):
        self.rules = [
            Candidate(Taxonomy.EMAIL, 0.85, ["label"]),
            Candidate(Taxonomy.PHONE, 0.4, ["name/id"]),
        ]
        self.statistical = [Candidate(Taxonomy.EMAIL, 0.72, ["hosted classifier"])]

    def test_keeps_higher_score_and_accumulates_reasons(self):
        merged = merge_candidates(self.rules, self.statistical)
        self.assertEqual(merged[0].type, Taxonomy.EMAIL)
        self.assertEqual(merged[0].score, 0.85)
        self.assertEqual(merged[0].reasons, ["label", "hosted classifier"])

    def test_sorted_descending(self):
        merged = merge_candidates(
            [Candidate(Taxonomy.CITY, 0.3, ["a"])],
            [Candidate(Taxonomy.LOCATION, 0.8, ["b"])],
            [Candidate(Taxonomy.SCHOOL, 0.5, ["c"])],
        )
        self.assertEqual([c.type for c in merged], [Taxonomy.LOCATION, Taxonomy.SCHOOL, Taxonomy.CITY])

    def test_empty_synthesizes_unknown(self):
        for merged in (merge_candidates(), merge_candidates([], [])):
            self.assertEqual(len(merged), 1)
            self.assertEqual(merged[0].type, Taxonomy.UNKNOWN)
            self.assertEqual(merged[0].score, 0.0)
            self.assertEqual(merged[0].reasons, [NO_MATCH_REASON])

    def test_idempotent(self):
        once = merge_candidates(self.rules)
        twice = merge_candidates(once, once)
        self.assertEqual(twice[0].type, once[0].type)
        self.assertEqual(twice[0].score, once[0].score)
        self.assertEqual([c.type for c in twice], [c.type for c in once])

    def test_inputs_not_mutated(self):
        merge_candidates(self.rules, self.statistical)
        self.assertEqual(self.rules[0].reasons, ["label"])
        self.assertEqual(self.statistical[0].score, 0.72)

    def test_tie_keeps_first_contributor(self):
        merged = merge_candidates(
            [Candidate(Taxonomy.EMAIL, 0.9, ["rule"])],
            [Candidate(Taxonomy.PHONE, 0.9, ["stat"])],
        )
        self.assertEqual(merged[0].type, Taxonomy.EMAIL)

    def test_scores_are_clamped(self):
        merged = merge_candidates([Candidate(Taxonomy.EMAIL, 1.7, []), Candidate(Taxonomy.PHONE, -2, [])])
        self.assertEqual(merged[0].score, 1.0)
        self.assertEqual(merged[1].score, 0.0)

    def test_best_known_type_skips_unknown(self):
        merged = merge_candidates([Candidate(Taxonomy.UNKNOWN, 0.9, []), Candidate(Taxonomy.CITY, 0.4, [])])
        self.assertEqual(best_known_type(merged), Taxonomy.CITY)
        self.assertEqual(best_known_type(merge_candidates()), Taxonomy.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
