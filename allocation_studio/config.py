"""
Configuration Management for Allocation Studio

Centralized configuration with validation and environment support.
"""

import json
import os
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, asdict


@dataclass
class ValidationConfig:
    """Validation bounds, fix fallbacks and insight thresholds"""
    min_priority_level: int = 1
    max_priority_level: int = 5
    default_priority_level: int = 3
    min_duration: int = 1
    default_duration: int = 1
    min_max_load: int = 1
    default_max_load: int = 1

    # Heuristic insights
    high_priority_level: int = 4
    high_priority_worker_ratio: float = 0.5
    low_skill_count: int = 2
    low_skill_worker_ratio: float = 0.3


@dataclass
class SimulationConfig:
    """Allocation simulator thresholds"""
    stress_medium_threshold: float = 0.6
    stress_high_threshold: float = 0.8

    # Capacity used when MaxLoadPerPhase cannot be parsed
    default_max_load: int = 1

    # Skill/phase fit for tasks that declare no requirements
    neutral_fit_score: float = 1.0


@dataclass
class OptimizerConfig:
    """Objective transformations used by the illustrative optimizer"""
    cost_workload_factor: float = 0.8
    cost_efficiency_boost: float = 1.1
    priority_efficiency_boost: float = 1.15
    high_priority_level: int = 4


@dataclass
class APIConfig:
    """LLM and rate limiting configuration for the assistant agent"""
    model_name: str = "gemini-2.5-flash"
    temperature: float = 0.0
    calls_per_minute: int = 9
    max_retries: int = 3
    timeout_seconds: int = 30
    recursion_limit: int = 25


@dataclass
class MonitoringConfig:
    """Performance monitoring configuration"""
    enable_monitoring: bool = True
    log_directory: str = "logs"
    save_session_logs: bool = True
    print_realtime_status: bool = True


@dataclass
class AllocationStudioConfig:
    """Complete configuration for allocation studio"""
    validation: ValidationConfig
    simulation: SimulationConfig
    optimizer: OptimizerConfig
    api: APIConfig
    monitoring: MonitoringConfig

    # File paths
    clients_file: str = "data/clients.json"
    workers_file: str = "data/workers.json"
    tasks_file: str = "data/tasks.json"
    config_file: str = "config/allocation_config.json"


def default_config() -> AllocationStudioConfig:
    """Configuration with every section at its defaults"""
    return AllocationStudioConfig(
        validation=ValidationConfig(),
        simulation=SimulationConfig(),
        optimizer=OptimizerConfig(),
        api=APIConfig(),
        monitoring=MonitoringConfig()
    )


class ConfigManager:
    """Manages configuration loading, validation, and environment overrides"""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file or "config/allocation_config.json"
        self.config = self._load_config()

    def _load_config(self) -> AllocationStudioConfig:
        """Load configuration from file with environment overrides"""
        # Start with defaults
        config_dict = asdict(default_config())

        # Load from file if exists
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r') as f:
                    file_config = json.load(f)
            except (OSError, ValueError) as e:
                print(f"Warning: Could not load config file {self.config_file}: {e}")
            else:
                config_dict = self._merge_configs(config_dict, file_config)

        config_dict = self._apply_env_overrides(config_dict)

        return self._dict_to_config(config_dict)

    def _merge_configs(self, base: Dict, override: Dict) -> Dict:
        """Recursively merge configuration dictionaries"""
        merged = base.copy()

        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_configs(merged[key], value)
            else:
                merged[key] = value

        return merged

    def _apply_env_overrides(self, config_dict: Dict) -> Dict:
        """Apply environment variable overrides"""
        if "ALLOCATION_MODEL" in os.environ:
            config_dict.setdefault("api", {})["model_name"] = os.environ["ALLOCATION_MODEL"]

        if "ALLOCATION_RATE_LIMIT" in os.environ:
            config_dict.setdefault("api", {})["calls_per_minute"] = int(os.environ["ALLOCATION_RATE_LIMIT"])

        # Simulation thresholds
        if "ALLOCATION_STRESS_HIGH" in os.environ:
            config_dict.setdefault("simulation", {})["stress_high_threshold"] = float(os.environ["ALLOCATION_STRESS_HIGH"])

        if "ALLOCATION_STRESS_MEDIUM" in os.environ:
            config_dict.setdefault("simulation", {})["stress_medium_threshold"] = float(os.environ["ALLOCATION_STRESS_MEDIUM"])

        # Monitoring configuration
        if "ALLOCATION_DISABLE_MONITORING" in os.environ:
            config_dict.setdefault("monitoring", {})["enable_monitoring"] = False

        if "ALLOCATION_LOG_DIR" in os.environ:
            config_dict.setdefault("monitoring", {})["log_directory"] = os.environ["ALLOCATION_LOG_DIR"]

        # File paths
        for key, env_name in (("clients_file", "ALLOCATION_CLIENTS_FILE"),
                              ("workers_file", "ALLOCATION_WORKERS_FILE"),
                              ("tasks_file", "ALLOCATION_TASKS_FILE")):
            if env_name in os.environ:
                config_dict[key] = os.environ[env_name]

        return config_dict

    def _dict_to_config(self, config_dict: Dict) -> AllocationStudioConfig:
        """Convert dictionary to typed configuration object"""
        defaults = default_config()
        try:
            return AllocationStudioConfig(
                validation=ValidationConfig(**config_dict.get("validation", {})),
                simulation=SimulationConfig(**config_dict.get("simulation", {})),
                optimizer=OptimizerConfig(**config_dict.get("optimizer", {})),
                api=APIConfig(**config_dict.get("api", {})),
                monitoring=MonitoringConfig(**config_dict.get("monitoring", {})),
                clients_file=config_dict.get("clients_file", defaults.clients_file),
                workers_file=config_dict.get("workers_file", defaults.workers_file),
                tasks_file=config_dict.get("tasks_file", defaults.tasks_file),
                config_file=config_dict.get("config_file", defaults.config_file)
            )
        except TypeError as e:
            raise ValueError(f"Invalid configuration: {e}")

    def save_config(self, config_file: Optional[str] = None):
        """Save current configuration to file"""
        file_path = config_file or self.config_file

        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(file_path, 'w') as f:
            json.dump(asdict(self.config), f, indent=2)

        print(f"Configuration saved to {file_path}")

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of issues"""
        issues = []
        validation = self.config.validation
        simulation = self.config.simulation

        if validation.min_priority_level > validation.max_priority_level:
            issues.append("min_priority_level must not exceed max_priority_level")

        if not (validation.min_priority_level <= validation.default_priority_level <= validation.max_priority_level):
            issues.append("default_priority_level must lie within the priority bounds")

        if validation.default_duration < validation.min_duration:
            issues.append("default_duration must be at least min_duration")

        if validation.default_max_load < validation.min_max_load:
            issues.append("default_max_load must be at least min_max_load")

        for name in ("high_priority_worker_ratio", "low_skill_worker_ratio"):
            if not 0 <= getattr(validation, name) <= 1:
                issues.append(f"{name} must be between 0 and 1")

        if not 0 < simulation.stress_medium_threshold < simulation.stress_high_threshold:
            issues.append("Stress thresholds must satisfy 0 < medium < high")

        if self.config.optimizer.cost_workload_factor <= 0 or self.config.optimizer.cost_workload_factor > 1:
            issues.append("cost_workload_factor must be in (0, 1]")

        if self.config.api.calls_per_minute <= 0:
            issues.append("API calls_per_minute must be positive")

        if self.config.api.temperature < 0 or self.config.api.temperature > 1:
            issues.append("API temperature must be between 0 and 1")

        return issues

    def print_config_summary(self):
        """Print human-readable configuration summary"""
        print("\n" + "="*60)
        print("ALLOCATION STUDIO CONFIGURATION")
        print("="*60)

        v = self.config.validation
        print("\nVALIDATION:")
        print(f"  PriorityLevel range: {v.min_priority_level}-{v.max_priority_level} (default {v.default_priority_level})")
        print(f"  Duration min: {v.min_duration}, MaxLoadPerPhase min: {v.min_max_load}")

        s = self.config.simulation
        print("\nSIMULATION:")
        print(f"  Stress thresholds: medium > {s.stress_medium_threshold:.0%}, high > {s.stress_high_threshold:.0%}")

        o = self.config.optimizer
        print("\nOPTIMIZER:")
        print(f"  Cost workload factor: {o.cost_workload_factor}")
        print(f"  Efficiency boosts: cost x{o.cost_efficiency_boost}, priority x{o.priority_efficiency_boost}")

        print("\nAPI:")
        print(f"  Model: {self.config.api.model_name}")
        print(f"  Rate limit: {self.config.api.calls_per_minute}/min")

        print("\nFILES:")
        print(f"  Clients: {self.config.clients_file}")
        print(f"  Workers: {self.config.workers_file}")
        print(f"  Tasks: {self.config.tasks_file}")

        issues = self.validate_config()
        if issues:
            print("\nCONFIGURATION ISSUES:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print("\nConfiguration is valid")

        print("="*60)


# Convenience function for easy access
def load_config(config_file: Optional[str] = None) -> AllocationStudioConfig:
    """Load and return allocation studio configuration"""
    manager = ConfigManager(config_file)
    return manager.config


if __name__ == "__main__":
    manager = ConfigManager()
    manager.print_config_summary()

    os.makedirs("config", exist_ok=True)
    manager.save_config("config/default_config.json")
