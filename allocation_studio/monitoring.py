"""
Performance Monitoring for Allocation Studio

Tracks operation timings for the assistant session and how data quality
evolves across validate/fix cycles.
"""

import time
import json
import os
from collections import Counter
from typing import Dict, List, Optional
from datetime import datetime, timezone

OPERATIONS = ('validation', 'fix', 'simulation', 'optimization')


class PerformanceMonitor:
    """Monitors and logs performance metrics"""

    def __init__(self, log_dir: str = "logs"):
        self.log_dir = log_dir
        os.makedirs(log_dir, exist_ok=True)
        self.session_start = datetime.now(timezone.utc)
        self.metrics = {
            'timings': {operation: [] for operation in OPERATIONS},
            'api_calls': 0,
            'validations_run': 0,
            'fixes_applied': 0,
            'fix_failures': 0,
            'simulations_run': 0,
            'best_error_count': float('inf'),
        }

    def start_timer(self) -> float:
        """Start timing an operation"""
        return time.time()

    def end_timer(self, start_time: float, operation: str) -> float:
        """End timing and record duration"""
        duration = time.time() - start_time
        if operation in self.metrics['timings']:
            self.metrics['timings'][operation].append(duration)
        return duration

    def record_api_call(self):
        """Record an API call"""
        self.metrics['api_calls'] += 1

    def record_validation(self, summary: Dict):
        """Record a validation pass and track the lowest error count seen"""
        self.metrics['validations_run'] += 1
        errors = summary.get('errors', 0)
        if errors < self.metrics['best_error_count']:
            self.metrics['best_error_count'] = errors

    def record_fixes(self, applied: int, failures: int = 0):
        self.metrics['fixes_applied'] += applied
        self.metrics['fix_failures'] += failures

    def record_simulation(self):
        self.metrics['simulations_run'] += 1

    def get_summary(self) -> Dict:
        """Get performance summary"""
        session_duration = (datetime.now(timezone.utc) - self.session_start).total_seconds()
        minutes = max(session_duration, 1e-6) / 60

        average_times = {}
        for operation, durations in self.metrics['timings'].items():
            average_times[operation] = round(sum(durations) / len(durations), 3) if durations else 0

        best_errors = self.metrics['best_error_count']
        return {
            'session_duration_seconds': round(session_duration, 2),
            'api_calls_total': self.metrics['api_calls'],
            'api_calls_per_minute': round(self.metrics['api_calls'] / minutes, 2),
            'validations_run': self.metrics['validations_run'],
            'fixes_applied': self.metrics['fixes_applied'],
            'fix_failures': self.metrics['fix_failures'],
            'simulations_run': self.metrics['simulations_run'],
            'best_error_count': None if best_errors == float('inf') else best_errors,
            'avg_time_seconds': average_times,
        }

    def save_session_log(self) -> str:
        """Save session metrics to file"""
        timestamp = self.session_start.strftime("%Y%m%d_%H%M%S")
        log_file = os.path.join(self.log_dir, f"performance_{timestamp}.json")

        summary = self.get_summary()
        summary['session_start'] = self.session_start.isoformat()
        summary['session_end'] = datetime.now(timezone.utc).isoformat()

        with open(log_file, 'w') as f:
            json.dump(summary, f, indent=2)

        return log_file

    def print_realtime_status(self):
        """Print current performance status"""
        summary = self.get_summary()

        print("\n" + "="*60)
        print("🔍 PERFORMANCE MONITOR")
        print("="*60)
        print(f"Session Duration: {summary['session_duration_seconds']}s")
        print(f"API Calls: {summary['api_calls_total']} ({summary['api_calls_per_minute']}/min)")
        print(f"Validations: {summary['validations_run']}  Simulations: {summary['simulations_run']}")
        print(f"Fixes Applied: {summary['fixes_applied']} (failed: {summary['fix_failures']})")
        print(f"\n📊 BEST RESULT:")
        print(f"  Lowest Error Count: {summary['best_error_count']}")
        print(f"\n⚡ TIMINGS:")
        for operation, seconds in summary['avg_time_seconds'].items():
            print(f"  Avg {operation}: {seconds}s")
        print("="*60)


class ValidationHistory:
    """Tracks data quality across validate/fix cycles"""

    def __init__(self):
        self.history: List[Dict] = []

    def add_result(self, iteration: int, summary: Dict, findings: Optional[List] = None):
        """Add a validation summary (and optionally its findings) to history"""
        record = {
            'iteration': iteration,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'total': summary.get('total', 0),
            'errors': summary.get('errors', 0),
            'warnings': summary.get('warnings', 0),
            'infos': summary.get('infos', 0),
            'auto_fixable': summary.get('auto_fixable', 0),
        }
        if findings is not None:
            record['categories'] = dict(Counter(f.category for f in findings))
        self.history.append(record)

    def get_improvement_trend(self) -> Dict:
        """Compare the first and last passes"""
        if len(self.history) < 2:
            return {"status": "insufficient_data"}

        first, last = self.history[0], self.history[-1]
        error_trend = last['errors'] - first['errors']

        return {
            'status': 'analyzed',
            'errors_trend': error_trend,
            'warnings_trend': last['warnings'] - first['warnings'],
            'total_iterations': len(self.history),
            'best_iteration': min(self.history, key=lambda r: (r['errors'], r['warnings']))['iteration'],
            'convergence_status': 'improving' if error_trend < 0 else 'stable' if error_trend == 0 else 'degrading'
        }

    def save_history(self, filename: str = None) -> str:
        """Save quality history to file"""
        if not filename:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            filename = f"logs/validation_history_{timestamp}.json"

        directory = os.path.dirname(filename)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filename, 'w') as f:
            json.dump({
                'history': self.history,
                'trend_analysis': self.get_improvement_trend(),
                'summary': {
                    'total_iterations': len(self.history),
                    'best_error_count': min((r['errors'] for r in self.history), default=None),
                    'final_error_count': self.history[-1]['errors'] if self.history else None,
                }
            }, f, indent=2)

        return filename
