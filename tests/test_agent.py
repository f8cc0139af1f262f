"""
Integration tests for the AllocationAssistantAgent.
"""

import json
import tempfile
import unittest
from unittest.mock import patch, MagicMock
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tests.fixtures import create_test_config, make_store, mock_llm_response, sample_records, save_test_data

TEST_ENV = {"GEMINI_API_KEY": "test-key"}


def build_agent(store=None, **kwargs):
    from allocation_studio.agent import AllocationAssistantAgent
    return AllocationAssistantAgent(config=create_test_config(), store=store or make_store(), **kwargs)


def tools_by_name(agent):
    return {tool.name: tool for tool in agent.tools}


@patch.dict(os.environ, TEST_ENV)
@patch('allocation_studio.agent.create_agent')
@patch('allocation_studio.agent.ChatGoogleGenerativeAI')
class TestAllocationAssistantAgentBasic(unittest.TestCase):
    """Basic integration tests for agent initialization."""

    def test_agent_creation(self, mock_chat, mock_create_agent):
        agent = build_agent()

        self.assertIsNotNone(agent)
        mock_chat.assert_called_once()
        self.assertEqual(mock_chat.call_args.kwargs['google_api_key'], 'test-key')
        self.assertEqual(mock_create_agent.call_args.kwargs['tools'], agent.tools)
        self.assertIsNone(agent.monitor)

    def test_tools_creation(self, mock_chat, mock_create_agent):
        """Test that agent creates the expected 9 tools."""
        agent = build_agent()
        tool_names = [tool.name for tool in agent._create_tools()]

        self.assertEqual(len(tool_names), 9)
        for expected in ('validate_data', 'apply_fixes', 'add_rule', 'remove_rule', 'set_priorities',
                         'simulate_allocation', 'optimize_allocation', 'export_configuration', 'analyze_data'):
            self.assertIn(expected, tool_names)

    def test_missing_api_key(self, mock_chat, mock_create_agent):
        from allocation_studio.agent import AllocationAssistantAgent

        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                AllocationAssistantAgent(config=create_test_config(), store=make_store())

    def test_loads_store_from_files(self, mock_chat, mock_create_agent):
        from allocation_studio.agent import AllocationAssistantAgent

        with tempfile.TemporaryDirectory() as temp_dir:
            paths = save_test_data(sample_records(), temp_dir)
            agent = AllocationAssistantAgent(paths['clients'], paths['workers'], paths['tasks'],
                                             config=create_test_config())

        stats = agent.get_summary_stats()
        self.assertEqual((stats['num_clients'], stats['num_workers'], stats['num_tasks']), (3, 3, 4))
        self.assertEqual(stats['total_task_requests'], 6)
        self.assertEqual(stats['total_worker_slots'], 10)


@patch.dict(os.environ, TEST_ENV)
@patch('allocation_studio.agent.create_agent')
@patch('allocation_studio.agent.ChatGoogleGenerativeAI')
class TestAgentTools(unittest.TestCase):
    """Tool behaviour over one session."""

    def test_validate_then_fix(self, mock_chat, mock_create_agent):
        records = sample_records()
        records['clients'][0]['PriorityLevel'] = 8
        agent = build_agent(make_store(**records))
        tools = tools_by_name(agent)

        validation = json.loads(tools['validate_data'].invoke({}))
        self.assertFalse(validation['valid'])
        self.assertEqual(validation['summary']['errors'], 1)

        fixed = json.loads(tools['apply_fixes'].invoke({}))
        self.assertEqual(len(fixed['applied']), 1)
        self.assertEqual(fixed['validation_after']['errors'], 0)
        self.assertEqual(agent.store.clients[0].priority_level, 5)
        self.assertEqual(len(agent.history.history), 2)

    def test_rules_and_priorities_flow_into_simulation(self, mock_chat, mock_create_agent):
        agent = build_agent()
        tools = tools_by_name(agent)

        added = json.loads(tools['add_rule'].invoke({'kind': 'coRun', 'parameters': {'tasks': ['T1', 'T4']}}))
        self.assertEqual(added['added']['id'], 'rule_1')
        report = json.loads(tools['simulate_allocation'].invoke({'worker_ids': ['W1']}))
        self.assertEqual([r['workerId'] for r in report['results']], ['W1'])
        self.assertEqual(report['results'][0]['assignedTasks'], ['T1', 'T4'])

        priorities = json.loads(tools['set_priorities'].invoke({'preset': 'quality_focused'}))
        self.assertEqual(priorities['activePreset'], 'quality_focused')
        self.assertEqual(agent.weights.active_preset, 'quality_focused')

        removed = json.loads(tools['remove_rule'].invoke({'rule_id': 'rule_1'}))
        self.assertEqual(removed['total_rules'], 0)

    def test_caller_errors_are_returned_to_the_model(self, mock_chat, mock_create_agent):
        agent = build_agent()
        tools = tools_by_name(agent)

        self.assertIn('error', json.loads(tools['add_rule'].invoke({'kind': 'teleport'})))
        self.assertIn('error', json.loads(tools['remove_rule'].invoke({'rule_id': 'rule_42'})))
        self.assertIn('error', json.loads(tools['set_priorities'].invoke({'weights': {'skill_matching': 150}})))
        self.assertEqual(agent.weights.weights['skill_matching'], 50)

    def test_export_carries_last_validation_time(self, mock_chat, mock_create_agent):
        agent = build_agent()

        never_validated = json.loads(tools_by_name(agent)['export_configuration'].invoke({}))
        self.assertIsNone(never_validated['validation']['lastValidated'])

        summary = agent.validate()
        stamp = agent.last_validated_at
        document = agent.export()

        self.assertEqual(document['validation']['lastValidated'], stamp.isoformat())
        self.assertEqual(document['validation']['lastValidated'], summary['last_validated'])
        self.assertEqual(document['validation']['totalIssues'], summary['total'])

    def test_optimize_export_and_analyze(self, mock_chat, mock_create_agent):
        agent = build_agent()
        tools = tools_by_name(agent)

        optimized = json.loads(tools['optimize_allocation'].invoke({'objective': 'fair'}))
        self.assertEqual(optimized['metrics']['after']['workload_variance'], 0.0)

        tools['add_rule'].invoke({'kind': 'loadLimit', 'parameters': {'workerGroup': 'GroupA', 'maxSlotsPerPhase': 1}})
        with tempfile.TemporaryDirectory() as temp_dir:
            target = os.path.join(temp_dir, 'out', 'config.json')
            saved = json.loads(tools['export_configuration'].invoke({'output_file': target}))
            with open(target) as f:
                document = json.load(f)

        self.assertEqual(saved['total_rules'], 1)
        self.assertEqual(document['rules'][0]['kind'], 'loadLimit')

        analysis = json.loads(tools['analyze_data'].invoke({}))
        self.assertEqual(analysis['ruleSuggestions'][0]['tasks'], ['T1', 'T2'])


@patch.dict(os.environ, TEST_ENV)
@patch('allocation_studio.agent.create_agent')
@patch('allocation_studio.agent.ChatGoogleGenerativeAI')
class TestAgentMockIntegration(unittest.TestCase):
    """Test agent with fully mocked workflow."""

    def test_run_method_with_mocks(self, mock_chat, mock_create_agent):
        mock_graph = MagicMock()
        mock_graph.invoke.return_value = {
            "messages": [mock_llm_response("Validate"), mock_llm_response("All data is valid.")]
        }
        mock_create_agent.return_value = mock_graph
        agent = build_agent()

        result = agent.run("Validate my data")

        self.assertEqual(result['output'], "All data is valid.")
        payload = mock_graph.invoke.call_args.args[0]
        self.assertEqual(payload['messages'][0]['content'], "Validate my data")
        self.assertEqual(mock_graph.invoke.call_args.kwargs['config']['recursion_limit'], 25)

    def test_run_flattens_content_parts(self, mock_chat, mock_create_agent):
        mock_graph = MagicMock()
        mock_graph.invoke.return_value = {
            "messages": [mock_llm_response([{"type": "text", "text": "Two "}, {"type": "text", "text": "parts"}])]
        }
        mock_create_agent.return_value = mock_graph

        self.assertEqual(build_agent().run("hi")['output'], "Two parts")

    def test_run_reraises_unrelated_errors(self, mock_chat, mock_create_agent):
        mock_graph = MagicMock()
        mock_graph.invoke.side_effect = RuntimeError("boom")
        mock_create_agent.return_value = mock_graph

        with self.assertRaises(RuntimeError):
            build_agent().run("hi")

    def test_run_reports_long_quota_wait(self, mock_chat, mock_create_agent):
        mock_graph = MagicMock()
        mock_graph.invoke.side_effect = RuntimeError("429 quota exhausted, retry in 900s")
        mock_create_agent.return_value = mock_graph

        with patch('builtins.print'):
            result = build_agent().run("hi")

        self.assertTrue(result['output'].startswith("Quota exceeded"))
        self.assertEqual(result['messages'], [])


if __name__ == '__main__':
    unittest.main()
