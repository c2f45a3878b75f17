"""
Unit tests for master matching against the bundled tables.
"""
import unittest

from vetmatch.master_data import MasterDataCache, MasterSources
from vetmatch.matcher import (
    DISEASE_CONFIDENCE_THRESHOLD,
    DRUG_CONFIDENCE_THRESHOLD,
    MAX_CANDIDATES,
    PROCEDURE_CONFIDENCE_THRESHOLD,
    KIND_SPECS,
    MasterMatcher,
    default_matcher,
    match_disease,
    rank_entries,
    reset_default_matcher,
)
from vetmatch.schema import EntityKind, MasterSource, ProcedureEntry


class TestDiseaseMatching(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.matcher = MasterMatcher()

    def test_pericarditis(self):
        result = self.matcher.match_disease("心のう炎")
        self.assertEqual(result.top.code, "01-01")
        self.assertTrue(result.top_confirmed)

    def test_exact_middle_node(self):
        result = self.matcher.match_disease("乳房炎")
        self.assertEqual(result.top.code, "07-01")
        self.assertEqual(result.top.name, "乳房炎")
        self.assertEqual(result.top.confidence, 1.0)
        self.assertTrue(result.top_confirmed)

    def test_hedged_query(self):
        result = self.matcher.match_disease("乳房炎かと思います")
        self.assertEqual(result.top.code, "07-01")
        self.assertTrue(result.top_confirmed)

    def test_suspicion_marker(self):
        result = self.matcher.match_disease("肺炎疑い")
        self.assertEqual(result.top.code, "03-14")
        self.assertEqual(result.query, "肺炎疑い")

    def test_abomasal_displacement(self):
        result = self.matcher.match_disease("第四胃変位")
        self.assertEqual(result.top.code, "04-10")
        self.assertEqual(result.top.master_source, MasterSource.BYOUMEI)
        self.assertEqual(result.top.details.major_name, "消化器病")

    def test_minor_node(self):
        result = self.matcher.match_disease("肺炎 誤嚥性")
        self.assertEqual(result.top.code, "03-14-03")
        self.assertEqual(result.top.details.minor_name, "誤嚥性")


class TestProcedureMatching(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.matcher = MasterMatcher()

    def test_spaced_master_names(self):
        result = self.matcher.match_procedure("初診")
        self.assertEqual(result.top.code, "S01-1")
        self.assertEqual(result.top.name, "初診")
        self.assertTrue(result.top_confirmed)
        self.assertEqual(self.matcher.match_procedure("再 診").top.code, "S01-2")

    def test_short_generic_name_not_confirmed(self):
        """'注射' is contained in several entries but matches none of them exactly."""
        result = self.matcher.match_procedure("注射")
        self.assertEqual(result.top.confidence, 0.8)
        self.assertEqual(result.top.code, "S02-1")
        self.assertFalse(result.top_confirmed)

    def test_procedure_details(self):
        details = self.matcher.match_procedure("静脈内注射").top.details
        self.assertEqual(details.section_id, "S02")
        self.assertEqual(details.section_title, "注射料")
        self.assertEqual(details.item_no, 3)


class TestDrugMatching(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.matcher = MasterMatcher()

    def test_generic_name(self):
        result = self.matcher.match_drug("アスコルビン酸注射液")
        self.assertEqual(result.top.code, "DRUG:アスコルビン酸注射液")
        self.assertTrue(result.top_confirmed)

    def test_note_alias(self):
        result = self.matcher.match_drug("50%ブドウ糖")
        self.assertEqual(result.top.name, "ブドウ糖注射液")
        self.assertEqual(result.top.confidence, 1.0)

    def test_glucose_dictation_rewritten(self):
        """'ブドウ糖液' is rewritten to the injectable generic before matching."""
        result = self.matcher.match_drug("50%ブドウ糖液")
        self.assertEqual(result.query, "50%ブドウ糖液")
        self.assertEqual(result.top.name, "ブドウ糖注射液")
        self.assertEqual(result.top.code, "DRUG:ブドウ糖注射液")
        self.assertEqual(result.top.confidence, 0.8)
        self.assertTrue(result.top_confirmed)

    def test_product_shorthand(self):
        result = self.matcher.match_drug("アモキシシリンLA注")
        self.assertEqual(result.top.name, "アモキシシリン油性懸濁注射液")
        self.assertTrue(result.top_confirmed)

    def test_administration_marker(self):
        result = self.matcher.match_drug("セファゾリンを投与")
        self.assertEqual(result.top.name, "セファゾリンナトリウム")
        self.assertEqual(result.top.details.generic_name, "セファゾリンナトリウム")
        self.assertGreater(result.top.details.alias_count, 1)


class TestMatchResultLaws(unittest.TestCase):

    QUERIES = {
        EntityKind.DISEASE: ["肺炎", "乳房炎かも", "心不全の疑い", "下痢", "xyz"],
        EntityKind.PROCEDURE: ["初診", "注射", "血液検査", "帝王切開"],
        EntityKind.DRUG: ["セファゾリン", "ペニシリン", "生食", "ビタミン"],
    }

    @classmethod
    def setUpClass(cls):
        cls.matcher = MasterMatcher()

    def test_candidates_bounded_and_sorted(self):
        for kind, queries in self.QUERIES.items():
            for query in queries:
                result = self.matcher.match(query, kind)
                confidences = [c.confidence for c in result.candidates]
                self.assertLessEqual(len(confidences), MAX_CANDIDATES)
                self.assertEqual(confidences, sorted(confidences, reverse=True))
                for confidence in confidences:
                    self.assertGreaterEqual(confidence, 0.0)
                    self.assertLessEqual(confidence, 1.0)
                    self.assertEqual(confidence, round(confidence, 3))

    def test_top_confirmed_matches_threshold(self):
        for kind, queries in self.QUERIES.items():
            threshold = self.matcher.threshold(kind)
            for query in queries:
                result = self.matcher.match(query, kind)
                if result.top is None:
                    self.assertFalse(result.top_confirmed)
                else:
                    self.assertEqual(result.top_confirmed, result.top.confidence >= threshold)

    def test_deterministic(self):
        for kind, queries in self.QUERIES.items():
            for query in queries:
                self.assertEqual(self.matcher.match(query, kind), self.matcher.match(query, kind))

    def test_empty_query(self):
        for kind in EntityKind:
            for query in ["", "   ", "　", "？"]:
                result = self.matcher.match(query, kind)
                self.assertEqual(result.candidates, ())
                self.assertFalse(result.top_confirmed)
                self.assertEqual(result.query, query)

    def test_hedge_only_query_is_empty(self):
        result = self.matcher.match_disease("疑い")
        self.assertEqual(result.candidates, ())

    def test_exact_master_name_confirmed(self):
        """Every master name matches itself with confidence 1.0."""
        cache = self.matcher.cache
        for entry in cache.diseases()[:10]:
            self.assertEqual(self.matcher.match_disease(entry.name).top.confidence, 1.0)
        for entry in cache.procedures():
            result = self.matcher.match_procedure(entry.name)
            self.assertEqual(result.top.confidence, 1.0)
            self.assertTrue(result.top_confirmed)
        for entry in cache.drugs():
            result = self.matcher.match_drug(entry.generic_name)
            self.assertEqual(result.top.code, entry.code)

    def test_to_dict(self):
        d = self.matcher.match_drug("生食").to_dict()
        self.assertEqual(d["query"], "生食")
        self.assertTrue(d["top_confirmed"])
        self.assertEqual(d["candidates"][0]["master_source"], "drug_reference")
        self.assertEqual(d["candidates"][0]["details"]["generic_name"], "生理食塩液")


class TestThresholds(unittest.TestCase):

    def test_defaults(self):
        matcher = MasterMatcher(cache=MasterDataCache())
        self.assertEqual(matcher.threshold(EntityKind.DISEASE), DISEASE_CONFIDENCE_THRESHOLD)
        self.assertEqual(matcher.threshold(EntityKind.PROCEDURE), PROCEDURE_CONFIDENCE_THRESHOLD)
        self.assertEqual(matcher.threshold(EntityKind.DRUG), DRUG_CONFIDENCE_THRESHOLD)

    def test_override(self):
        matcher = MasterMatcher(thresholds={"procedure": 0.8})
        self.assertEqual(matcher.threshold("procedure"), 0.8)
        self.assertEqual(matcher.threshold("drug"), DRUG_CONFIDENCE_THRESHOLD)
        self.assertTrue(matcher.match_procedure("注射").top_confirmed)


class TestCustomSources(unittest.TestCase):

    def test_matches_against_given_tables(self):
        sources = MasterSources(
            disease_csv="major,middle,minor,note\n01　皮膚病,01 皮膚炎,,\n",
            procedure_csv="section_id,section_title,item_no,item_name,points_B,points_A\n",
            drug_csv="display_name,generic_name\n",
        )
        matcher = MasterMatcher(cache=MasterDataCache(sources))
        self.assertEqual(matcher.match_disease("皮膚炎").top.code, "01-01")
        self.assertEqual(matcher.match_procedure("初診").candidates, ())
        self.assertEqual(matcher.match_drug("生食").candidates, ())


class TestRankEntries(unittest.TestCase):

    def _entry(self, item_no, name):
        return ProcedureEntry(
            name=name,
            code=f"S09-{item_no}",
            section_id="S09",
            section_title="test",
            item_no=item_no,
            points_b=0.0,
            points_a=0.0,
        )

    def test_ties_keep_load_order(self):
        entries = [self._entry(i, name) for i, name in enumerate(["腹腔注射", "皮下注射", "筋肉注射", "尾静脈注射"], 1)]
        spec = KIND_SPECS[EntityKind.PROCEDURE]
        candidates = rank_entries("注射", entries, spec.alias_accessor, spec.build_candidate)
        self.assertEqual([c.code for c in candidates], ["S09-1", "S09-2", "S09-3"])

    def test_max_candidates(self):
        entries = [self._entry(i, f"処置{i}") for i in range(1, 6)]
        spec = KIND_SPECS[EntityKind.PROCEDURE]
        candidates = rank_entries("処置", entries, spec.alias_accessor, spec.build_candidate, max_candidates=2)
        self.assertEqual(len(candidates), 2)

    def test_empty_table(self):
        spec = KIND_SPECS[EntityKind.PROCEDURE]
        self.assertEqual(rank_entries("注射", [], spec.alias_accessor, spec.build_candidate), [])


class TestDefaultMatcher(unittest.TestCase):

    def tearDown(self):
        reset_default_matcher()

    def test_shared_instance(self):
        self.assertIs(default_matcher(), default_matcher())
        first = default_matcher()
        reset_default_matcher()
        self.assertIsNot(first, default_matcher())

    def test_module_level_helpers(self):
        self.assertEqual(match_disease("肺炎").top.code, "03-14")


if __name__ == "__main__":
    unittest.main()
