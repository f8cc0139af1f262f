"""
Test fixtures and utilities for allocation studio tests.
"""

import copy
import json
from typing import Dict, List

from allocation_studio.config import default_config
from allocation_studio.models import EntityStore


# Test data fixtures
SAMPLE_CLIENTS = [
    {
        "ClientID": "C1",
        "ClientName": "Acme Corp",
        "PriorityLevel": 5,
        "RequestedTaskIDs": "T1,T2",
        "GroupTag": "Enterprise",
        "AttributesJSON": '{"region": "NA"}'
    },
    {
        "ClientID": "C2",
        "ClientName": "Globex",
        "PriorityLevel": 2,
        "RequestedTaskIDs": "T1,T2,T3",
        "GroupTag": "SMB",
        "AttributesJSON": ""
    },
    {
        "ClientID": "C3",
        "ClientName": "Initech",
        "PriorityLevel": 3,
        "RequestedTaskIDs": "T4",
        "GroupTag": "SMB",
        "AttributesJSON": "{}"
    }
]

SAMPLE_WORKERS = [
    {
        "WorkerID": "W1",
        "WorkerName": "Ada",
        "Skills": "python,sql,testing",
        "AvailableSlots": "[1,2,3]",
        "MaxLoadPerPhase": 2,
        "WorkerGroup": "GroupA",
        "QualificationLevel": 4
    },
    {
        "WorkerID": "W2",
        "WorkerName": "Grace",
        "Skills": "design,writing",
        "AvailableSlots": "[2,4]",
        "MaxLoadPerPhase": 3,
        "WorkerGroup": "GroupB",
        "QualificationLevel": 3
    },
    {
        "WorkerID": "W3",
        "WorkerName": "Linus",
        "Skills": "python,devops,sql,testing",
        "AvailableSlots": "[1,2,3,4,5]",
        "MaxLoadPerPhase": 4,
        "WorkerGroup": "GroupA",
        "QualificationLevel": 5
    }
]

SAMPLE_TASKS = [
    {
        "TaskID": "T1",
        "TaskName": "Build API",
        "Category": "Engineering",
        "Duration": 2,
        "RequiredSkills": "python",
        "PreferredPhases": "1,2",
        "MaxConcurrent": 2
    },
    {
        "TaskID": "T2",
        "TaskName": "Review Schema",
        "Category": "Data",
        "Duration": 1,
        "RequiredSkills": "sql",
        "PreferredPhases": "2-3",
        "MaxConcurrent": 1
    },
    {
        "TaskID": "T3",
        "TaskName": "Document Release",
        "Category": "Content",
        "Duration": 1,
        "RequiredSkills": "writing",
        "PreferredPhases": "4",
        "MaxConcurrent": 1
    },
    {
        "TaskID": "T4",
        "TaskName": "Test Pipeline",
        "Category": "Engineering",
        "Duration": 3,
        "RequiredSkills": "python,testing",
        "PreferredPhases": "",
        "MaxConcurrent": 1
    }
]

# One client, one worker, two tasks; "design" is held by nobody
SCENARIO_CLIENTS = [
    {"ClientID": "C1", "ClientName": "Solo Client", "PriorityLevel": 5, "RequestedTaskIDs": "T1,T2"}
]
SCENARIO_WORKERS = [
    {"WorkerID": "W1", "WorkerName": "Solo Worker", "Skills": "coding", "AvailableSlots": [1, 2],
     "MaxLoadPerPhase": 2}
]
SCENARIO_TASKS = [
    {"TaskID": "T1", "TaskName": "Write code", "Duration": 1, "RequiredSkills": "coding"},
    {"TaskID": "T2", "TaskName": "Draw mockups", "Duration": 1, "RequiredSkills": "design"}
]


def sample_records() -> Dict[str, List[Dict]]:
    """Deep copies of the sample collections, safe to modify in a test."""
    return {
        "clients": copy.deepcopy(SAMPLE_CLIENTS),
        "workers": copy.deepcopy(SAMPLE_WORKERS),
        "tasks": copy.deepcopy(SAMPLE_TASKS),
    }


def make_store(clients=None, workers=None, tasks=None) -> EntityStore:
    """Build a store, defaulting each collection to the samples."""
    return EntityStore.from_records(
        copy.deepcopy(SAMPLE_CLIENTS) if clients is None else clients,
        copy.deepcopy(SAMPLE_WORKERS) if workers is None else workers,
        copy.deepcopy(SAMPLE_TASKS) if tasks is None else tasks,
    )


def scenario_store() -> EntityStore:
    return EntityStore.from_records(copy.deepcopy(SCENARIO_CLIENTS),
                                    copy.deepcopy(SCENARIO_WORKERS),
                                    copy.deepcopy(SCENARIO_TASKS))


def create_test_config():
    """Default configuration with monitoring switched off (no log files)."""
    config = default_config()
    config.monitoring.enable_monitoring = False
    return config


def save_test_data(records: Dict[str, List[Dict]], base_path: str):
    """Save test data to JSON files for testing."""
    import os
    os.makedirs(base_path, exist_ok=True)

    paths = {}
    for name in ("clients", "workers", "tasks"):
        path = os.path.join(base_path, f"{name}.json")
        with open(path, "w") as f:
            json.dump(records[name], f, indent=2)
        paths[name] = path
    return paths


def mock_llm_response(content="Mocked LLM response"):
    """Create a mock chat message object."""
    class MockResponse:
        def __init__(self, content):
            self.content = content

    return MockResponse(content)
