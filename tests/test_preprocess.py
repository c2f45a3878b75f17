"""
Unit tests for query normalization.
"""
import unittest

from vetmatch.preprocess import (
    normalize_disease_query,
    normalize_drug_query,
    normalize_entity_name,
    normalize_match_text,
    normalize_procedure_query,
    normalize_query,
    strip_hedging,
)
from vetmatch.schema import EntityKind


class TestGenericNormalization(unittest.TestCase):

    def test_nfkc_and_whitespace(self):
        """Full-width letters fold to ASCII and all whitespace is removed."""
        self.assertEqual(normalize_match_text("　アモキシシリン ＬＡ 注 "), "アモキシシリンLA注")

    def test_punctuation_removed(self):
        self.assertEqual(normalize_match_text("「肺炎」（細菌性）"), "肺炎細菌性")
        self.assertEqual(normalize_match_text("初診、再診。"), "初診再診")

    def test_trailing_question_mark(self):
        self.assertEqual(normalize_match_text("肺炎？"), "肺炎")
        self.assertEqual(normalize_match_text("肺炎??"), "肺炎")

    def test_entity_name_keeps_question_mark(self):
        """Entity names used for evaluation keys do not strip '?'."""
        self.assertEqual(normalize_entity_name("肺炎？"), "肺炎?")

    def test_empty_input(self):
        self.assertEqual(normalize_match_text(""), "")
        self.assertEqual(normalize_match_text("　 "), "")
        self.assertEqual(normalize_entity_name(None), "")

    def test_idempotent(self):
        for text in ["肺炎疑い", "「アモキシシリン ＬＡ注」", "初 診?"]:
            once = normalize_match_text(text)
            self.assertEqual(normalize_match_text(once), once)


class TestHedging(unittest.TestCase):

    def test_i_think(self):
        self.assertEqual(strip_hedging("乳房炎かと思います"), "乳房炎")
        self.assertEqual(strip_hedging("肺炎ではないかと思われる"), "肺炎")

    def test_maybe(self):
        self.assertEqual(strip_hedging("肺炎かもしれません"), "肺炎")
        self.assertEqual(strip_hedging("肺炎かも"), "肺炎")

    def test_i_wonder(self):
        self.assertEqual(strip_hedging("肺炎かな"), "肺炎")
        self.assertEqual(strip_hedging("肺炎かなと思う"), "肺炎")
        self.assertEqual(normalize_disease_query("肺炎疑いかな"), "肺炎")

    def test_probably(self):
        self.assertEqual(strip_hedging("肺炎でしょう"), "肺炎")
        self.assertEqual(strip_hedging("肺炎っぽい"), "肺炎")

    def test_possibility(self):
        self.assertEqual(strip_hedging("肺炎の可能性"), "肺炎")
        self.assertEqual(strip_hedging("肺炎の可能性が高い"), "肺炎")

    def test_compound_hedge_reduces_fully(self):
        self.assertEqual(strip_hedging("肺炎の可能性があると思います"), "肺炎")

    def test_plain_term_unchanged(self):
        self.assertEqual(strip_hedging("第四胃変位"), "第四胃変位")


class TestKindPipelines(unittest.TestCase):

    def test_disease_suspicion_markers(self):
        self.assertEqual(normalize_disease_query("肺炎疑い"), "肺炎")
        self.assertEqual(normalize_disease_query("肺炎の疑いあり"), "肺炎")
        self.assertEqual(normalize_disease_query("肺炎疑"), "肺炎")
        self.assertEqual(normalize_disease_query("乳房炎未確認"), "乳房炎")

    def test_disease_hedge_and_suspicion(self):
        self.assertEqual(normalize_disease_query("乳房炎かと思います"), "乳房炎")
        self.assertEqual(normalize_disease_query("肺炎の疑いかも"), "肺炎")

    def test_drug_administration_markers(self):
        self.assertEqual(normalize_drug_query("セファゾリンを投与"), "セファゾリン")
        self.assertEqual(normalize_drug_query("セファゾリン投与済み"), "セファゾリン")
        self.assertEqual(normalize_drug_query("ブドウ糖を注射しました"), "ブドウ糖")

    def test_drug_query_rules(self):
        """Dictated 'ブドウ糖液' becomes the injectable generic, keeping any strength."""
        self.assertEqual(normalize_drug_query("50%ブドウ糖液"), "50%ブドウ糖注射液")
        self.assertEqual(normalize_drug_query("５０％ブドウ糖液"), "50%ブドウ糖注射液")
        self.assertEqual(normalize_drug_query("ブドウ糖液を投与"), "ブドウ糖注射液")
        self.assertEqual(normalize_drug_query("ブドウ糖注射液"), "ブドウ糖注射液")

    def test_procedure_keeps_injection_words(self):
        """Procedure queries only drop hedging, not administration words."""
        self.assertEqual(normalize_procedure_query("静脈内注射"), "静脈内注射")
        self.assertEqual(normalize_procedure_query("初 診"), "初診")

    def test_dispatch(self):
        self.assertEqual(normalize_query("肺炎疑い", EntityKind.DISEASE), "肺炎")
        self.assertEqual(normalize_query("肺炎疑い", "disease"), "肺炎")
        self.assertEqual(normalize_query("セファゾリンを投与", EntityKind.DRUG), "セファゾリン")
        self.assertEqual(normalize_query("肺炎疑い", EntityKind.PROCEDURE), "肺炎疑い")

    def test_unknown_kind_rejected(self):
        with self.assertRaises(ValueError):
            normalize_query("肺炎", "symptom")


if __name__ == "__main__":
    unittest.main()
