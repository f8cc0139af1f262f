"""
Allocation Studio Assistant Agent

Uses LangChain + Google Gemini with tools over one editing session:
validate the data, apply auto-fixes, manage rules and priorities,
simulate and optimize allocations, export the configuration.

Run: python -m allocation_studio.agent
"""

import json
import os
import sys
import re
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from langchain.agents import create_agent
from langchain_core.tools import StructuredTool
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import BaseModel, Field

from .config import AllocationStudioConfig, ConfigManager
from .export import build_export_config
from .fixes import AutoFixer
from .insights import analyze_data_patterns
from .models import ERROR, EntityStore
from .monitoring import PerformanceMonitor, ValidationHistory
from .optimizer import AllocationOptimizer
from .priorities import PriorityConfigError, PriorityWeights
from .rules import add_rule, make_rule, remove_rule
from .simulator import AllocationSimulator
from .validation import DataValidator, summarize_findings

# Load environment variables
load_dotenv()

MAX_FINDINGS_IN_RESPONSE = 25


class RateLimiter:
    """Global rate limiter for API calls"""
    def __init__(self, calls_per_minute=9):
        self.calls_per_minute = calls_per_minute
        self.call_times = deque()

    def wait_if_needed(self):
        """Wait if we're approaching rate limit"""
        now = time.time()

        # Remove calls older than 60 seconds
        while self.call_times and now - self.call_times[0] > 60:
            self.call_times.popleft()

        if len(self.call_times) >= self.calls_per_minute:
            sleep_time = 60 - (now - self.call_times[0]) + 1
            if sleep_time > 0:
                print(f"⏳ Rate limit: waiting {sleep_time:.1f}s...")
                time.sleep(sleep_time)
                self.call_times.clear()

        self.call_times.append(time.time())


class TeeLogger:
    """Logs to both console and file"""
    def __init__(self, filename):
        self.terminal = sys.stdout
        self.log = open(filename, 'w', encoding='utf-8')

    def write(self, message):
        self.terminal.write(message)
        self.log.write(message)

    def flush(self):
        self.terminal.flush()
        self.log.flush()

    def close(self):
        self.log.close()


def load_store(clients_file: str, workers_file: str, tasks_file: str) -> EntityStore:
    """Read the three JSON record lists (canonical field names) into a store."""
    collections = []
    for path in (clients_file, workers_file, tasks_file):
        with open(path, 'r', encoding='utf-8') as f:
            collections.append(json.load(f))
    return EntityStore.from_records(*collections)


def message_text(content: Any) -> str:
    """Final message content may be a string or a list of content parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get('type') == 'text':
                parts.append(part.get('text', ''))
        return ''.join(parts)
    return '' if content is None else str(content)


# Pydantic models for tool inputs (required by LangChain)

class ValidateDataInput(BaseModel):
    """Input for validation - no arguments needed, validates the current data"""
    max_findings: int = Field(default=MAX_FINDINGS_IN_RESPONSE, description="Maximum number of findings to list in the response")


class ApplyFixesInput(BaseModel):
    """Input for auto-fixing"""
    finding_ids: Optional[List[str]] = Field(default=None, description="Finding ids to fix (optional - if not provided, fixes every auto-fixable finding from the last validation)")


class AddRuleInput(BaseModel):
    """Input for adding a business rule"""
    kind: str = Field(description="Rule kind: coRun | slotRestriction | loadLimit | phaseWindow | patternMatch | precedenceOverride | custom")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Rule parameters, e.g. {'tasks': ['T1','T2']} for coRun or {'workerGroup': 'A', 'maxSlotsPerPhase': 2} for loadLimit")
    name: Optional[str] = Field(default=None, description="Display name for the rule")


class RemoveRuleInput(BaseModel):
    """Input for removing a rule"""
    rule_id: str = Field(description="Id of the rule to remove (e.g. rule_2)")


class SetPrioritiesInput(BaseModel):
    """Input for changing allocation priorities"""
    preset: Optional[str] = Field(default=None, description="Preset: maximize_fulfillment | fair_distribution | minimize_workload | quality_focused")
    weights: Optional[Dict[str, int]] = Field(default=None, description="Individual criterion weights (0-100) to override")
    criteria_order: Optional[List[str]] = Field(default=None, description="All 8 criteria, most important first")


class SimulateInput(BaseModel):
    """Input for simulation - uses the session's rules and priorities"""
    worker_ids: Optional[List[str]] = Field(default=None, description="Only report these workers (optional)")


class OptimizeInput(BaseModel):
    """Input for optimization"""
    objective: str = Field(description="Objective text; recognized keywords: cost, fair, priority")


class ExportInput(BaseModel):
    """Input for export"""
    output_file: Optional[str] = Field(default=None, description="Path to write the configuration JSON (optional)")


class AnalyzeDataInput(BaseModel):
    """Input for data pattern analysis - no arguments needed"""


class AllocationAssistantAgent:
    """
    Assistant agent for resource-allocation configuration.

    Holds one session (entity store snapshot, rules, priority weights and
    the last validation findings). Tools replace the snapshot; they never
    edit it in place.
    """

    def __init__(self, clients_file: Optional[str] = None,
                 workers_file: Optional[str] = None,
                 tasks_file: Optional[str] = None,
                 config: Optional[AllocationStudioConfig] = None,
                 store: Optional[EntityStore] = None):
        """
        Initialize agent with a store or with paths to the three JSON files.

        Args:
            clients_file/workers_file/tasks_file: Paths to record lists (default from config)
            config: Configuration object (optional)
            store: Pre-built entity store; takes precedence over file paths
        """
        if config is None:
            config = ConfigManager().config
        self.config = config

        if store is None:
            store = load_store(clients_file or config.clients_file,
                               workers_file or config.workers_file,
                               tasks_file or config.tasks_file)
        self.store = store
        self.rules: tuple = ()
        self.weights = PriorityWeights.defaults()
        self.last_findings: List = []
        self.last_validated_at: Optional[datetime] = None

        self.validator = DataValidator(config.validation)
        self.fixer = AutoFixer(config.validation)
        self.simulator = AllocationSimulator(config.simulation)
        self.optimizer = AllocationOptimizer(config.optimizer, config.simulation)
        self.history = ValidationHistory()
        self.monitor = (PerformanceMonitor(config.monitoring.log_directory)
                        if config.monitoring.enable_monitoring else None)

        self.rate_limiter = RateLimiter(calls_per_minute=config.api.calls_per_minute)
        self.tools = self._create_tools()

        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise ValueError("GEMINI_API_KEY not found in environment variables")

        self.llm = ChatGoogleGenerativeAI(
            model=config.api.model_name,
            temperature=config.api.temperature,
            google_api_key=api_key
        )
        self.agent = self._create_agent()

    # ---- Session operations (also used directly by the CLI) -------------

    def validate(self) -> Dict:
        start = self.monitor.start_timer() if self.monitor else None
        validated_at = datetime.now(timezone.utc)
        findings = self.validator.validate(self.store)
        summary = summarize_findings(findings, validated_at)
        self.last_findings = findings
        self.last_validated_at = validated_at
        self.history.add_result(len(self.history.history) + 1, summary, findings)
        if self.monitor:
            self.monitor.end_timer(start, 'validation')
            self.monitor.record_validation(summary)
        return summary

    def apply_fixes(self, finding_ids: Optional[List[str]] = None) -> Dict:
        if not self.last_findings:
            self.validate()
        selected = self.last_findings
        if finding_ids:
            wanted = set(finding_ids)
            selected = [f for f in self.last_findings if f.id in wanted]

        start = self.monitor.start_timer() if self.monitor else None
        report = self.fixer.fix_all(self.store, selected)
        self.store = report.store
        if self.monitor:
            self.monitor.end_timer(start, 'fix')
            self.monitor.record_fixes(len(report.applied), len(report.failures))

        summary = self.validate()
        return {
            'applied': list(report.applied),
            'failures': [{'finding_id': fid, 'reason': reason} for fid, reason in report.failures],
            'validation_after': summary,
        }

    def simulate(self) -> Dict:
        start = self.monitor.start_timer() if self.monitor else None
        report = self.simulator.simulate_report(self.store, self.rules, self.weights)
        if self.monitor:
            self.monitor.end_timer(start, 'simulation')
            self.monitor.record_simulation()
        return report.to_dict()

    def optimize(self, objective: str) -> Dict:
        start = self.monitor.start_timer() if self.monitor else None
        result = self.optimizer.optimize(self.store, objective)
        if self.monitor:
            self.monitor.end_timer(start, 'optimization')
        return result.to_dict()

    def export(self) -> Dict:
        return build_export_config(self.store, self.rules, self.weights, self.last_findings,
                                   self.last_validated_at).to_dict()

    # ---- LangChain wiring -------------------------------------------------

    def _create_tools(self) -> List[StructuredTool]:
        """Create LangChain tools from the session operations"""

        def validate_data_tool(max_findings: int = MAX_FINDINGS_IN_RESPONSE) -> str:
            """
            Validates clients, workers and tasks.

            Checks required columns, duplicate ids, numeric ranges
            (PriorityLevel 1-5, Duration >= 1, MaxLoadPerPhase >= 1),
            AttributesJSON syntax, unknown task references and skill coverage.
            Returns the severity summary and the first findings.
            """
            summary = self.validate()
            return json.dumps({
                "valid": summary['errors'] == 0,
                "summary": summary,
                "findings": [f.to_dict() for f in self.last_findings[:max_findings]],
                "truncated": len(self.last_findings) > max_findings
            })

        def apply_fixes_tool(finding_ids: Optional[List[str]] = None) -> str:
            """
            Applies automatic fixes (rename duplicates, clamp ranges, reset
            broken JSON, drop unknown task references) and re-validates.
            """
            return json.dumps(self.apply_fixes(finding_ids))

        def add_rule_tool(kind: str, parameters: Optional[Dict[str, Any]] = None,
                          name: Optional[str] = None) -> str:
            """Adds a business rule after the existing ones."""
            try:
                rule = make_rule(kind, parameters or {}, existing=self.rules, name=name)
            except ValueError as e:
                return json.dumps({"error": str(e)})
            self.rules = add_rule(self.rules, rule)
            return json.dumps({"added": rule.to_dict(), "total_rules": len(self.rules)})

        def remove_rule_tool(rule_id: str) -> str:
            """Removes a rule by id."""
            remaining = remove_rule(self.rules, rule_id)
            if len(remaining) == len(self.rules):
                return json.dumps({"error": f"No rule with id {rule_id}"})
            self.rules = remaining
            return json.dumps({"removed": rule_id, "total_rules": len(self.rules)})

        def set_priorities_tool(preset: Optional[str] = None,
                                weights: Optional[Dict[str, int]] = None,
                                criteria_order: Optional[List[str]] = None) -> str:
            """Selects a preset, overrides weights and/or reorders criteria."""
            try:
                updated = PriorityWeights.from_preset(preset, self.weights.criteria_order) if preset else self.weights
                for key, value in (weights or {}).items():
                    updated = updated.with_weight(key, value)
                if criteria_order:
                    updated = updated.with_order(criteria_order)
            except PriorityConfigError as e:
                return json.dumps({"error": str(e)})
            self.weights = updated
            return json.dumps(self.weights.to_dict())

        def simulate_allocation_tool(worker_ids: Optional[List[str]] = None) -> str:
            """
            Simulates allocation with the current rules and priorities.

            Returns per-worker assigned tasks, workload, efficiency and stress,
            plus any rules that were skipped because they were invalid.
            """
            report = self.simulate()
            if worker_ids:
                wanted = set(worker_ids)
                report['results'] = [r for r in report['results'] if r['workerId'] in wanted]
            return json.dumps(report)

        def optimize_allocation_tool(objective: str) -> str:
            """Compares the baseline allocation with an objective-adjusted one."""
            return json.dumps(self.optimize(objective))

        def export_configuration_tool(output_file: Optional[str] = None) -> str:
            """Builds the versioned export configuration (rules, priorities, validation)."""
            document = self.export()
            if output_file:
                directory = os.path.dirname(output_file)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                with open(output_file, 'w', encoding='utf-8') as f:
                    json.dump(document, f, indent=2)
                return json.dumps({"saved_to": output_file, "total_rules": document['metadata']['totalRules']})
            return json.dumps(document)

        def analyze_data_tool() -> str:
            """Heuristic insights and co-run rule suggestions for the current data."""
            return json.dumps(analyze_data_patterns(self.store, self.config.validation).to_dict())

        tools = [
            StructuredTool.from_function(
                func=validate_data_tool,
                name="validate_data",
                description="Validate the current clients, workers and tasks. Returns error/warning/info counts and findings.",
                args_schema=ValidateDataInput
            ),
            StructuredTool.from_function(
                func=apply_fixes_tool,
                name="apply_fixes",
                description="Apply automatic fixes for auto-fixable findings from the last validation, then re-validate.",
                args_schema=ApplyFixesInput
            ),
            StructuredTool.from_function(
                func=add_rule_tool,
                name="add_rule",
                description="Add a business rule (coRun, slotRestriction, loadLimit, phaseWindow, patternMatch, precedenceOverride, custom).",
                args_schema=AddRuleInput
            ),
            StructuredTool.from_function(
                func=remove_rule_tool,
                name="remove_rule",
                description="Remove a business rule by id.",
                args_schema=RemoveRuleInput
            ),
            StructuredTool.from_function(
                func=set_priorities_tool,
                name="set_priorities",
                description="Change allocation priorities: pick a preset, override criterion weights, or reorder criteria.",
                args_schema=SetPrioritiesInput
            ),
            StructuredTool.from_function(
                func=simulate_allocation_tool,
                name="simulate_allocation",
                description="Simulate task allocation per worker using the current rules and priorities.",
                args_schema=SimulateInput
            ),
            StructuredTool.from_function(
                func=optimize_allocation_tool,
                name="optimize_allocation",
                description="Optimize the baseline allocation for an objective (cost, fair, priority) and report measured improvements.",
                args_schema=OptimizeInput
            ),
            StructuredTool.from_function(
                func=export_configuration_tool,
                name="export_configuration",
                description="Export the versioned configuration document, optionally to a file.",
                args_schema=ExportInput
            ),
            StructuredTool.from_function(
                func=analyze_data_tool,
                name="analyze_data",
                description="Analyze data patterns: availability, uncovered skills, priority balance, co-run suggestions.",
                args_schema=AnalyzeDataInput
            ),
        ]

        return tools

    def _create_agent(self):
        """Create the LangChain agent with tools"""
        counts = self.store.counts()
        system_prompt = f"""You are an expert resource-allocation configuration assistant.

The current session holds {counts['clients']} clients, {counts['workers']} workers and {counts['tasks']} tasks.

WORKFLOW:
1. validate_data first. Explain errors before warnings before infos.
2. apply_fixes only for findings the user wants fixed; report failures honestly.
3. add_rule / remove_rule / set_priorities when the user describes constraints or preferences.
4. simulate_allocation to preview assignments; mention any skipped rules and why.
5. optimize_allocation when asked to improve cost, fairness or priority handling.
6. export_configuration when the user is done.

Never invent task, worker or client ids. Use the ids returned by the tools.
"""
        return create_agent(model=self.llm, tools=self.tools, system_prompt=system_prompt)

    def run(self, query: str) -> Dict:
        """
        Run the agent on a query.

        Args:
            query: Natural language request (e.g., "Validate my data and fix what you can")

        Returns:
            Dict with the agent's final text under 'output' and the message list
        """
        self.rate_limiter.wait_if_needed()
        if self.monitor:
            self.monitor.record_api_call()
        try:
            result = self._invoke(query)
        except Exception as e:
            # Handle Google's quota exceeded errors
            if "ResourceExhausted" not in str(type(e)) and "429" not in str(e) and "quota" not in str(e).lower():
                raise
            print(f"\n🚫 Google API Quota Exceeded")
            print(f"Error: {str(e)}")
            wait_match = re.search(r'retry in ([\d.]+)s', str(e))
            if not wait_match or float(wait_match.group(1)) >= 300:
                return {"output": f"Quota exceeded. Error: {str(e)[:200]}...", "messages": []}
            wait_time = float(wait_match.group(1))
            print(f"⏳ Waiting {wait_time:.1f}s and retrying...")
            time.sleep(wait_time + 1)
            result = self._invoke(query)

        messages = result.get("messages", []) if isinstance(result, dict) else []
        output = message_text(messages[-1].content) if messages else ''
        return {"output": output, "messages": messages}

    def _invoke(self, query: str):
        return self.agent.invoke(
            {"messages": [{"role": "user", "content": query}]},
            config={"recursion_limit": self.config.api.recursion_limit},
        )

    def get_summary_stats(self) -> Dict:
        """Get summary statistics about the data"""
        counts = self.store.counts()
        requested = sum(len(c.requested_task_ids) for c in self.store.clients)
        slots = sum(len(w.available_slots) for w in self.store.workers)
        return {
            "num_clients": counts['clients'],
            "num_workers": counts['workers'],
            "num_tasks": counts['tasks'],
            "total_task_requests": requested,
            "total_worker_slots": slots,
            "num_rules": len(self.rules),
            "last_error_count": sum(1 for f in self.last_findings if f.severity == ERROR),
        }


def main():
    """Example usage"""
    os.makedirs("logs", exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_file = f"logs/agent_run_{timestamp}.txt"
    tee = TeeLogger(log_file)
    sys.stdout = tee

    try:
        print("Initializing Allocation Studio Assistant with Google Gemini...")
        print(f"Logging to: {log_file}")
        agent = AllocationAssistantAgent()

        stats = agent.get_summary_stats()
        print("\nData Summary:")
        print(f"  Clients: {stats['num_clients']}")
        print(f"  Workers: {stats['num_workers']}")
        print(f"  Tasks: {stats['num_tasks']}")
        print(f"  Task requests: {stats['total_task_requests']}")
        print(f"  Worker slots: {stats['total_worker_slots']}")

        query = " ".join(sys.argv[1:]) or (
            "Validate the data, fix everything that can be fixed automatically, "
            "then simulate the allocation and summarize the stressed workers."
        )
        print(f"\nQuery: {query}")
        print("="*80)

        result = agent.run(query)

        print("\n" + "="*80)
        print("RESULT:")
        print("="*80)
        print(result['output'] or "The agent completed without a final response.")

        if agent.monitor:
            agent.monitor.print_realtime_status()
            if agent.config.monitoring.save_session_logs:
                print(f"✓ Session metrics saved to: {agent.monitor.save_session_log()}")
        if len(agent.history.history) > 0:
            print(f"✓ Validation history saved to: {agent.history.save_history()}")

        print(f"\n✓ Full log saved to: {log_file}")

    finally:
        sys.stdout = tee.terminal
        tee.close()


if __name__ == "__main__":
    if os.getenv("LANGCHAIN_API_KEY"):
        os.environ["LANGCHAIN_TRACING_V2"] = "true"
        os.environ["LANGCHAIN_PROJECT"] = "allocation-studio"
        print("✓ LangSmith tracing enabled")
    else:
        os.environ["LANGCHAIN_TRACING_V2"] = "false"
    main()
