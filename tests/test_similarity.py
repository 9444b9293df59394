from __future__ import annotations

import unittest

from sheet_intake.similarity import EMPTY_SIMILARITY, similarity


class SimilarityTests(unittest.TestCase):
    def test_identical_strings_score_one(self):
        self.assertEqual(similarity("ola nordmann", "ola nordmann"), 1.0)

    def test_empty_input_is_a_fixed_non_match(self):
        self.assertEqual(similarity("", ""), EMPTY_SIMILARITY)
        self.assertEqual(similarity("", "gate 1"), EMPTY_SIMILARITY)
        self.assertEqual(similarity("gate 1", ""), EMPTY_SIMILARITY)
        self.assertLess(EMPTY_SIMILARITY, 0.8)

    def test_symmetric(self):
        self.assertEqual(similarity("storgata 10", "storgt 10"), similarity("storgt 10", "storgata 10"))

    def test_single_typo_in_a_name_clears_the_fuzzy_threshold(self):
        score = similarity("ola nordmann", "ola nordman")
        self.assertGreaterEqual(score, 0.9)
        self.assertLess(score, 1.0)

    def test_ratio_uses_longer_string(self):
        self.assertAlmostEqual(similarity("gate 1", "gate 2"), 5 / 6)

    def test_disjoint_strings_score_zero(self):
        self.assertEqual(similarity("abc", "xyz"), 0.0)

    def test_no_case_folding(self):
        self.assertLess(similarity("OSLO", "oslo"), 1.0)


if __name__ == "__main__":
    unittest.main()
