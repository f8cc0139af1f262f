"""
Tests for the DataValidator class.
"""

import unittest
from datetime import datetime, timezone
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from allocation_studio.models import ERROR, INFO, WARNING, EntityStore, FindingCategory
from allocation_studio.validation import DataValidator, summarize_findings, validate_data
from tests.fixtures import make_store, sample_records, scenario_store


def categories(findings):
    return [f.category for f in findings]


class TestDataValidator(unittest.TestCase):
    """Test cases for DataValidator."""

    def setUp(self):
        """Set up test fixtures."""
        self.validator = DataValidator()

    def test_clean_sample_has_no_errors(self):
        """Sample data produces only the skill-diversity insight."""
        findings = self.validator.validate(make_store())

        self.assertFalse([f for f in findings if f.severity == ERROR])
        self.assertEqual([f.id for f in findings], ['insight-skill-diversity'])
        self.assertEqual(findings[0].severity, INFO)

    def test_scenario_reports_uncovered_design_skill(self):
        """Required skill nobody holds becomes one Skill Coverage warning."""
        findings = self.validator.validate(scenario_store())
        coverage = [f for f in findings if f.category == FindingCategory.SKILL_COVERAGE]

        self.assertEqual(len(coverage), 1)
        self.assertEqual(coverage[0].severity, WARNING)
        self.assertIn('design', coverage[0].message)
        self.assertEqual(coverage[0].entity_id, 'T2')
        self.assertFalse(coverage[0].auto_fixable)

    def test_priority_out_of_range(self):
        """PriorityLevel "9" is flagged and fixable."""
        records = sample_records()
        records['clients'][0]['PriorityLevel'] = "9"
        findings = self.validator.validate(make_store(**records))
        ranges = [f for f in findings if f.category == FindingCategory.OUT_OF_RANGE]

        self.assertEqual(len(ranges), 1)
        self.assertEqual(ranges[0].key, (FindingCategory.OUT_OF_RANGE, 'C1', 'PriorityLevel'))
        self.assertTrue(ranges[0].auto_fixable)
        self.assertEqual(ranges[0].error_class, 'range')

    def test_unparsable_and_missing_numbers_are_flagged(self):
        records = sample_records()
        records['tasks'][0]['Duration'] = "soon"
        records['workers'][0]['MaxLoadPerPhase'] = None
        findings = self.validator.validate(make_store(**records))
        keys = {f.key for f in findings if f.category == FindingCategory.OUT_OF_RANGE}

        self.assertIn((FindingCategory.OUT_OF_RANGE, 'T1', 'Duration'), keys)
        self.assertIn((FindingCategory.OUT_OF_RANGE, 'W1', 'MaxLoadPerPhase'), keys)

    def test_duplicate_worker_ids(self):
        records = sample_records()
        records['workers'][1]['WorkerID'] = 'W1'
        findings = self.validator.validate(make_store(**records))
        duplicates = [f for f in findings if f.category == FindingCategory.DUPLICATE_ID]

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].entity_id, 'W1')
        self.assertEqual(duplicates[0].row_index, 1)
        self.assertEqual(duplicates[0].severity, ERROR)

    def test_broken_json(self):
        records = sample_records()
        records['clients'][1]['AttributesJSON'] = '{"region": NA'
        findings = self.validator.validate(make_store(**records))
        broken = [f for f in findings if f.category == FindingCategory.BROKEN_JSON]

        self.assertEqual(len(broken), 1)
        self.assertEqual(broken[0].entity_id, 'C2')

    def test_unknown_task_reference_reported_once(self):
        records = sample_records()
        records['clients'][0]['RequestedTaskIDs'] = "T1,T99,T99"
        findings = self.validator.validate(make_store(**records))
        unknown = [f for f in findings if f.category == FindingCategory.UNKNOWN_REFERENCE]

        self.assertEqual(len(unknown), 1)
        self.assertIn('T99', unknown[0].message)

    def test_missing_required_column(self):
        """Column checks use the header set, and skip range checks on that column."""
        records = sample_records()
        for client in records['clients']:
            del client['PriorityLevel']
        findings = self.validator.validate(make_store(**records))

        missing = [f for f in findings if f.category == FindingCategory.MISSING_COLUMN]
        self.assertEqual(len(missing), 1)
        self.assertEqual(missing[0].field, 'PriorityLevel')
        self.assertEqual(missing[0].entity_id, 'structure')
        self.assertFalse(missing[0].auto_fixable)
        self.assertNotIn(FindingCategory.OUT_OF_RANGE, categories(findings))

    def test_empty_store(self):
        self.assertEqual(self.validator.validate(EntityStore()), [])

    def test_check_order(self):
        """Structural before integrity before range before format before references."""
        records = sample_records()
        records['workers'][1]['WorkerID'] = 'W1'
        records['clients'][0]['PriorityLevel'] = 0
        records['clients'][1]['AttributesJSON'] = '{'
        records['clients'][2]['RequestedTaskIDs'] = 'T42'
        for task in records['tasks']:
            del task['TaskName']
        found = categories(self.validator.validate(make_store(**records)))

        order = [FindingCategory.MISSING_COLUMN, FindingCategory.DUPLICATE_ID, FindingCategory.OUT_OF_RANGE,
                 FindingCategory.BROKEN_JSON, FindingCategory.UNKNOWN_REFERENCE]
        positions = [found.index(category) for category in order]
        self.assertEqual(positions, sorted(positions))

    def test_validation_is_idempotent(self):
        records = sample_records()
        records['clients'][0]['PriorityLevel'] = 7
        records['workers'][2]['WorkerID'] = 'W1'
        store = make_store(**records)

        self.assertEqual(self.validator.validate(store), self.validator.validate(store))

    def test_validation_does_not_raise_on_garbage(self):
        store = EntityStore.from_records(
            clients=[{"ClientID": None, "PriorityLevel": [1], "RequestedTaskIDs": 5}],
            workers=[{"WorkerID": "W1", "Skills": None, "AvailableSlots": None, "MaxLoadPerPhase": "x"}],
            tasks=[{"TaskID": "T1", "Duration": float('nan'), "RequiredSkills": ""}],
        )
        findings = self.validator.validate(store)
        self.assertTrue(any(f.severity == ERROR for f in findings))

    def test_insights(self):
        """High-priority ratio insight fires when urgent clients outnumber half the workers."""
        records = sample_records()
        for client in records['clients']:
            client['PriorityLevel'] = 5
        findings = self.validator.validate(make_store(**records))
        ids = [f.id for f in findings if f.category == FindingCategory.DATA_INSIGHT]

        self.assertIn('insight-high-priority-ratio', ids)
        self.assertIn('insight-skill-diversity', ids)


class TestSummaries(unittest.TestCase):

    def test_summarize_findings(self):
        records = sample_records()
        records['clients'][0]['PriorityLevel'] = 9
        findings = DataValidator().validate(make_store(**records))
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        summary = summarize_findings(findings, stamp)

        self.assertEqual(summary['total'], len(findings))
        self.assertEqual(summary['errors'], 1)
        self.assertEqual(summary['infos'], 1)
        self.assertEqual(summary['auto_fixable'], 1)
        self.assertEqual(summary['last_validated'], stamp.isoformat())

    def test_validate_data_wrapper(self):
        result = validate_data(make_store())
        self.assertTrue(result['valid'])
        self.assertEqual(result['summary']['errors'], 0)
        self.assertIsNotNone(result['summary']['last_validated'])

    def test_summary_without_run_time(self):
        self.assertIsNone(summarize_findings([])['last_validated'])


if __name__ == '__main__':
    unittest.main()
