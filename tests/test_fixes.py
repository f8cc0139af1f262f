"""
Tests for the AutoFixer class.
"""

import unittest
from dataclasses import replace
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from allocation_studio.fixes import AutoFixer, FixNotApplicableError, fix_all, remove_invalid_references
from allocation_studio.models import WORKERS, FindingCategory
from allocation_studio.validation import DataValidator
from tests.fixtures import make_store, sample_records, scenario_store


class TestAutoFixer(unittest.TestCase):
    """Test cases for AutoFixer."""

    def setUp(self):
        """Set up test fixtures."""
        self.fixer = AutoFixer()
        self.validator = DataValidator()

    def findings_for(self, store, category):
        return [f for f in self.validator.validate(store) if f.category == category]

    def test_priority_clamped_to_five(self):
        records = sample_records()
        records['clients'][0]['PriorityLevel'] = "9"
        store = make_store(**records)
        finding = self.findings_for(store, FindingCategory.OUT_OF_RANGE)[0]

        fixed = self.fixer.apply_fix(store, finding)

        self.assertEqual(fixed.clients[0].priority_level, 5)
        self.assertEqual(store.clients[0].priority_level, "9")  # original snapshot untouched
        self.assertFalse(self.findings_for(fixed, FindingCategory.OUT_OF_RANGE))

    def test_low_values_clamped_up_and_garbage_gets_default(self):
        records = sample_records()
        records['tasks'][0]['Duration'] = -4
        records['workers'][0]['MaxLoadPerPhase'] = "lots"
        store = make_store(**records)

        report = self.fixer.fix_all(store, self.validator.validate(store))

        self.assertEqual(report.store.tasks[0].duration, 1)
        self.assertEqual(report.store.workers[0].max_load_per_phase, 1)
        self.assertTrue(report.ok)

    def test_duplicate_second_occurrence_renamed(self):
        records = sample_records()
        records['workers'][1]['WorkerID'] = 'W1'
        store = make_store(**records)
        finding = self.findings_for(store, FindingCategory.DUPLICATE_ID)[0]

        fixed = self.fixer.apply_fix(store, finding)

        self.assertEqual([w.worker_id for w in fixed.workers], ['W1', 'W1_2', 'W3'])

    def test_duplicate_rename_avoids_existing_ids(self):
        records = sample_records()
        records['workers'][1]['WorkerID'] = 'W1'
        records['workers'][2]['WorkerID'] = 'W1_2'
        records['workers'].append(dict(records['workers'][0]))
        store = make_store(**records)
        finding = self.findings_for(store, FindingCategory.DUPLICATE_ID)[0]

        fixed = self.fixer.apply_fix(store, finding)
        ids = [w.worker_id for w in fixed.workers]

        self.assertEqual(ids, ['W1', 'W1_2_2', 'W1_2', 'W1_4'])
        self.assertEqual(len(set(ids)), len(ids))

    def test_broken_json_reset(self):
        records = sample_records()
        records['clients'][1]['AttributesJSON'] = "{oops"
        store = make_store(**records)
        finding = self.findings_for(store, FindingCategory.BROKEN_JSON)[0]

        fixed = self.fixer.apply_fix(store, finding)

        self.assertEqual(fixed.clients[1].attributes_json, '{}')
        self.assertEqual(fixed.clients[0].attributes_json, store.clients[0].attributes_json)

    def test_unknown_references_removed(self):
        records = sample_records()
        records['clients'][0]['RequestedTaskIDs'] = "T1,T98,T2,T99"
        store = make_store(**records)

        fixed = remove_invalid_references(store, 'C1')

        self.assertEqual(fixed.clients[0].requested_task_ids, ('T1', 'T2'))
        self.assertFalse(self.findings_for(fixed, FindingCategory.UNKNOWN_REFERENCE))

    def test_non_fixable_finding_raises(self):
        store = scenario_store()
        coverage = self.findings_for(store, FindingCategory.SKILL_COVERAGE)[0]

        with self.assertRaises(FixNotApplicableError):
            self.fixer.apply_fix(store, coverage)

    def test_fix_all_skips_advisory_findings(self):
        store = scenario_store()
        findings = self.validator.validate(store)

        report = fix_all(store, findings)

        self.assertEqual(report.applied, ())
        self.assertEqual(len(report.skipped), len(findings))
        self.assertEqual(report.store, store)

    def test_fix_all_collects_failures_and_continues(self):
        records = sample_records()
        records['clients'][0]['PriorityLevel'] = 0
        records['clients'][1]['AttributesJSON'] = "{"
        store = make_store(**records)
        findings = self.validator.validate(store)
        range_finding = next(f for f in findings if f.category == FindingCategory.OUT_OF_RANGE)

        # Point the range finding at a field with no bounds so its handler fails
        broken = replace(range_finding, field='ClientName')
        report = self.fixer.fix_all(store, [broken] + [f for f in findings if f is not range_finding])

        self.assertEqual([fid for fid, _ in report.failures], [broken.id])
        self.assertFalse(report.ok)
        self.assertEqual(report.store.clients[1].attributes_json, '{}')

    def test_fix_then_validate_clears_every_fixed_key(self):
        records = sample_records()
        records['clients'][0]['PriorityLevel'] = 11
        records['clients'][1]['AttributesJSON'] = "{bad"
        records['clients'][2]['RequestedTaskIDs'] = "T4,T404"
        records['workers'][2]['WorkerID'] = 'W1'
        records['workers'][2]['MaxLoadPerPhase'] = 0
        records['tasks'][3]['Duration'] = "0"
        store = make_store(**records)
        findings = self.validator.validate(store)
        fixable_keys = {f.key for f in findings if f.auto_fixable}

        report = self.fixer.fix_all(store, findings)
        remaining = {f.key for f in self.validator.validate(report.store)}

        self.assertTrue(report.ok)
        self.assertFalse(fixable_keys & remaining)
        self.assertEqual(len({w.worker_id for w in report.store.workers}), len(report.store.workers))

    def test_duplicate_rows_sharing_range_finding_key(self):
        """Range fixes on a duplicated id reach every row that carries the key."""
        records = sample_records()
        records['workers'][1]['WorkerID'] = 'W1'
        records['workers'][0]['MaxLoadPerPhase'] = 0
        records['workers'][1]['MaxLoadPerPhase'] = -2
        store = make_store(**records)
        ranges = [f for f in self.validator.validate(store) if f.category == FindingCategory.OUT_OF_RANGE]

        fixed = self.fixer.apply_fix(store, ranges[0])

        self.assertEqual([w.max_load for w in fixed.records(WORKERS)][:2], [1, 1])


if __name__ == '__main__':
    unittest.main()
