"""
Allocation Studio Sample Data Generator

Generates clients, workers and tasks in the canonical field layout, with
optional data-quality defects (duplicate ids, out-of-range values, broken
JSON, dangling task references, uncovered skills) for exercising the
validation and auto-fix flow.

Run: python scripts/generate_data.py [--defects] [--seed 42]
"""

import argparse
import json
import os
import random
import sys
from typing import Dict, List

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from allocation_studio.models import EntityStore
from allocation_studio.validation import DataValidator, summarize_findings

# Configuration
NUM_CLIENTS = 12
NUM_WORKERS = 10
NUM_TASKS = 20
NUM_PHASES = 6
SKILLS = [
    "python",
    "sql",
    "design",
    "testing",
    "devops",
    "analytics",
    "writing",
    "support",
]
WORKER_GROUPS = ["GroupA", "GroupB", "GroupC"]
CATEGORIES = ["Engineering", "Data", "Operations", "Content"]
TASK_VERBS = ["Build", "Review", "Migrate", "Audit", "Document", "Deploy", "Analyze", "Test"]
TASK_OBJECTS = ["API", "Dashboard", "Pipeline", "Report", "Schema", "Release", "Runbook", "Survey"]
CLIENT_NAMES = ["Acme Corp", "Globex", "Initech", "Umbrella", "Hooli", "Stark Industries",
                "Wayne Enterprises", "Wonka", "Soylent", "Tyrell", "Cyberdyne", "Gringotts",
                "Oscorp", "Vandelay", "Massive Dynamic"]
WORKER_NAMES = ["Ada", "Grace", "Linus", "Margaret", "Ken", "Barbara", "Dennis", "Frances",
                "Edsger", "Radia", "Guido", "Hedy", "Alan", "Katherine", "Tim"]


def generate_tasks() -> List[Dict]:
    """Tasks need 1-2 skills, run 1-3 phases and prefer a few phases"""
    tasks = []
    for i in range(NUM_TASKS):
        preferred = sorted(random.sample(range(1, NUM_PHASES + 1), k=random.randint(1, 3)))
        tasks.append({
            "TaskID": f"T{i + 1}",
            "TaskName": f"{random.choice(TASK_VERBS)} {random.choice(TASK_OBJECTS)}",
            "Category": random.choice(CATEGORIES),
            "Duration": random.randint(1, 3),
            "RequiredSkills": ",".join(random.sample(SKILLS, k=random.randint(1, 2))),
            "PreferredPhases": ",".join(str(p) for p in preferred),
            "MaxConcurrent": random.randint(1, 3),
        })
    return tasks


def generate_workers() -> List[Dict]:
    """Every skill is held by at least one worker"""
    workers = []
    uncovered = list(SKILLS)
    random.shuffle(uncovered)
    for i in range(NUM_WORKERS):
        skills = random.sample(SKILLS, k=random.randint(2, 4))
        if uncovered:
            skill = uncovered.pop()
            if skill not in skills:
                skills.append(skill)
        slots = sorted(random.sample(range(1, NUM_PHASES + 1), k=random.randint(2, 5)))
        workers.append({
            "WorkerID": f"W{i + 1}",
            "WorkerName": WORKER_NAMES[i % len(WORKER_NAMES)],
            "Skills": ",".join(skills),
            "AvailableSlots": "[" + ",".join(str(s) for s in slots) + "]",
            "MaxLoadPerPhase": random.randint(1, 4),
            "WorkerGroup": random.choice(WORKER_GROUPS),
            "QualificationLevel": random.randint(1, 5),
        })
    return workers


def generate_clients(tasks: List[Dict]) -> List[Dict]:
    task_ids = [t["TaskID"] for t in tasks]
    clients = []
    for i in range(NUM_CLIENTS):
        requested = random.sample(task_ids, k=random.randint(1, 4))
        clients.append({
            "ClientID": f"C{i + 1}",
            "ClientName": CLIENT_NAMES[i % len(CLIENT_NAMES)],
            "PriorityLevel": random.randint(1, 5),
            "RequestedTaskIDs": ",".join(requested),
            "GroupTag": random.choice(["Enterprise", "SMB", "Internal"]),
            "AttributesJSON": json.dumps({"region": random.choice(["NA", "EU", "APAC"])}),
        })
    return clients


def inject_defects(clients: List[Dict], workers: List[Dict], tasks: List[Dict]):
    """One instance of every finding category the validator reports"""
    clients[0]["PriorityLevel"] = 9
    clients[1]["RequestedTaskIDs"] += ",T999"
    clients[2]["AttributesJSON"] = "{region: NA"
    workers.append(dict(workers[0], WorkerName=workers[0]["WorkerName"] + " (copy)"))
    workers[1]["MaxLoadPerPhase"] = 0
    tasks[0]["Duration"] = 0
    tasks[1]["RequiredSkills"] += ",quantum"


def print_summary(store: EntityStore):
    """Print data summary and the validation outcome"""
    print("\n" + "="*60)
    print("DATA SUMMARY")
    print("="*60)
    counts = store.counts()
    print(f"  Clients: {counts['clients']}")
    print(f"  Workers: {counts['workers']}")
    print(f"  Tasks: {counts['tasks']}")

    requested = sum(len(c.requested_task_ids) for c in store.clients)
    capacity = sum(w.max_load or 0 for w in store.workers)
    print(f"  Task requests: {requested}")
    print(f"  Total worker capacity (per phase): {capacity}")

    findings = DataValidator().validate(store)
    summary = summarize_findings(findings)
    print("\n" + "="*60)
    print("VALIDATION CHECK")
    print("="*60)
    print(f"  Errors: {summary['errors']}  Warnings: {summary['warnings']}  Infos: {summary['infos']}")
    print(f"  Auto-fixable: {summary['auto_fixable']}")
    for finding in findings[:10]:
        print(f"    [{finding.severity}] {finding.category}: {finding.message}")


def main():
    parser = argparse.ArgumentParser(description="Generate sample allocation data")
    parser.add_argument("--output-dir", default="data", help="Directory for the JSON files")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (for reproducibility)")
    parser.add_argument("--defects", action="store_true", help="Inject data-quality defects")
    args = parser.parse_args()

    print("Generating allocation studio data...")
    random.seed(args.seed)

    tasks = generate_tasks()
    workers = generate_workers()
    clients = generate_clients(tasks)
    if args.defects:
        inject_defects(clients, workers, tasks)

    os.makedirs(args.output_dir, exist_ok=True)
    for name, records in (("clients", clients), ("workers", workers), ("tasks", tasks)):
        path = os.path.join(args.output_dir, f"{name}.json")
        with open(path, 'w') as f:
            json.dump(records, f, indent=2)
        print(f"  ✓ {path}")

    print_summary(EntityStore.from_records(clients, workers, tasks))


if __name__ == "__main__":
    main()
