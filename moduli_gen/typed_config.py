"""
Typed Configuration Classes

Provides type-safe access to configuration values, replacing
dictionary-based access with dataclasses validated at load time.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .host import DEFAULT_ENTROPY_PATH
from .jobs import SSH_KEYGEN_MAX_BITS, SYNTAXES, compute_size_classes


@dataclass
class GenerationConfig:
    """Which bit sizes to generate and how hard to screen them."""
    min_bits: int = 3072
    max_bits: int = 8192
    bit_delta: int = 1024
    iterations: int = 100

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.min_bits <= 0:
            raise ValueError(f"min_bits must be positive, got {self.min_bits}")
        if self.bit_delta <= 0:
            raise ValueError(f"bit_delta must be positive, got {self.bit_delta}")
        if self.min_bits > self.max_bits:
            raise ValueError(f"min_bits ({self.min_bits}) exceeds max_bits ({self.max_bits})")
        if self.max_bits > SSH_KEYGEN_MAX_BITS:
            raise ValueError(f"max_bits cannot exceed {SSH_KEYGEN_MAX_BITS}, got {self.max_bits}")
        if self.iterations <= 0:
            raise ValueError(f"iterations must be positive, got {self.iterations}")

    def size_classes(self):
        return compute_size_classes(self.min_bits, self.max_bits, self.bit_delta)


@dataclass
class SchedulerConfig:
    poll_interval: float = 5.0
    workers: int = 0  # 0 = one per physical core
    idle_priority: bool = True

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.workers < 0:
            raise ValueError(f"workers cannot be negative, got {self.workers}")


@dataclass
class PreflightConfig:
    """Entropy pool check run before any job starts."""
    entropy_minimum: int = 2000
    entropy_maximum: int = 4096
    entropy_path: str = DEFAULT_ENTROPY_PATH
    skip: bool = False


@dataclass
class ExecutionConfig:
    """Execution environment configuration."""
    work_dir: str = "."
    output_prefix: str = "moduli"
    keep_failed_output: bool = True
    job_log_dir: str = "data/job_logs"

    def ensure_dirs_exist(self) -> None:
        Path(self.work_dir).mkdir(parents=True, exist_ok=True)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    file: str = "data/logs/moduli_gen.log"
    level: str = "INFO"

    def ensure_log_dir_exists(self) -> None:
        """Create log directory if it doesn't exist."""
        Path(self.file).parent.mkdir(parents=True, exist_ok=True)


@dataclass
class SSHKeygenConfig:
    path: str = "ssh-keygen"
    syntax: str = "legacy"  # 'legacy' (-G/-T) or 'modern' (-M generate/screen)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.syntax not in SYNTAXES:
            raise ValueError(f"ssh_keygen syntax must be one of {', '.join(SYNTAXES)}, got {self.syntax}")


@dataclass
class ProgramsConfig:
    ssh_keygen: SSHKeygenConfig = field(default_factory=SSHKeygenConfig)


@dataclass
class AppConfig:
    """
    Root configuration object containing all settings.

    Usage:
        config = TypedConfigLoader().load("moduli.yaml")
        print(config.generation.min_bits)
        print(config.programs.ssh_keygen.path)
    """
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    preflight: PreflightConfig = field(default_factory=PreflightConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    programs: ProgramsConfig = field(default_factory=ProgramsConfig)

    def validate(self) -> None:
        """
        Re-check values after command-line overrides.

        Raises:
            ConfigError: If any section is invalid
        """
        try:
            self.generation.validate()
            self.scheduler.validate()
            self.programs.ssh_keygen.validate()
        except ValueError as e:
            raise ConfigError(str(e)) from e


class TypedConfigLoader:
    """
    Load configuration from YAML into typed dataclasses.

    Usage:
        loader = TypedConfigLoader()
        config = loader.load("moduli.yaml")
    """

    def load(self, config_path: Optional[str] = None) -> AppConfig:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to configuration file, or None for defaults

        Raises:
            ConfigError: If the file is missing, unparseable or invalid
        """
        from .config_manager import ConfigManager

        if config_path is None:
            return AppConfig()

        try:
            raw_config = ConfigManager().load_config(config_path)
        except (OSError, yaml.YAMLError, ValueError) as e:
            raise ConfigError(str(e)) from e

        try:
            return self._parse_config(raw_config)
        except (ValueError, TypeError) as e:
            raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e

    def _parse_config(self, raw: Dict[str, Any]) -> AppConfig:
        """Parse raw dictionary into typed config."""
        return AppConfig(
            generation=self._parse_generation(raw.get('generation') or {}),
            scheduler=self._parse_scheduler(raw.get('scheduler') or {}),
            preflight=self._parse_preflight(raw.get('preflight') or {}),
            execution=self._parse_execution(raw.get('execution') or {}),
            logging=self._parse_logging(raw.get('logging') or {}),
            programs=self._parse_programs(raw.get('programs') or {}),
        )

    def _parse_generation(self, raw: Dict[str, Any]) -> GenerationConfig:
        return GenerationConfig(
            min_bits=int(raw.get('min_bits', 3072)),
            max_bits=int(raw.get('max_bits', 8192)),
            bit_delta=int(raw.get('bit_delta', 1024)),
            iterations=int(raw.get('iterations', 100)),
        )

    def _parse_scheduler(self, raw: Dict[str, Any]) -> SchedulerConfig:
        return SchedulerConfig(
            poll_interval=float(raw.get('poll_interval', 5.0)),
            workers=int(raw.get('workers', 0)),
            idle_priority=bool(raw.get('idle_priority', True)),
        )

    def _parse_preflight(self, raw: Dict[str, Any]) -> PreflightConfig:
        return PreflightConfig(
            entropy_minimum=int(raw.get('entropy_minimum', 2000)),
            entropy_maximum=int(raw.get('entropy_maximum', 4096)),
            entropy_path=raw.get('entropy_path', DEFAULT_ENTROPY_PATH),
            skip=bool(raw.get('skip', False)),
        )

    def _parse_execution(self, raw: Dict[str, Any]) -> ExecutionConfig:
        return ExecutionConfig(
            work_dir=raw.get('work_dir', '.'),
            output_prefix=raw.get('output_prefix', 'moduli'),
            keep_failed_output=bool(raw.get('keep_failed_output', True)),
            job_log_dir=raw.get('job_log_dir', 'data/job_logs'),
        )

    def _parse_logging(self, raw: Dict[str, Any]) -> LoggingConfig:
        return LoggingConfig(
            file=raw.get('file', 'data/logs/moduli_gen.log'),
            level=str(raw.get('level', 'INFO')).upper(),
        )

    def _parse_programs(self, raw: Dict[str, Any]) -> ProgramsConfig:
        ssh_keygen = raw.get('ssh_keygen') or {}
        return ProgramsConfig(
            ssh_keygen=SSHKeygenConfig(
                path=ssh_keygen.get('path', 'ssh-keygen'),
                syntax=ssh_keygen.get('syntax', 'legacy'),
            ),
        )
