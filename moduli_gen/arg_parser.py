#!/usr/bin/env python3
"""
Command-line parsing for the moduli generator.
"""
import argparse

from .jobs import SYNTAXES
from .typed_config import AppConfig


def parse_bits(value: str) -> int:
    """
    Parse a positive bit size, accepting forms like "4096" or "4k".

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer
    """
    text = value.strip().lower()
    multiplier = 1
    if text.endswith("k"):
        text = text[:-1]
        multiplier = 1024
    try:
        result = int(text) * multiplier
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid bit size: {value}") from e
    if result <= 0:
        raise argparse.ArgumentTypeError(f"Bit size must be positive: {value}")
    return result


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for gen_moduli.py."""
    parser = argparse.ArgumentParser(
        description='Generate a fresh OpenSSH moduli file using every physical core',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full run with settings from moduli.yaml (or built-in defaults)
  python3 gen_moduli.py

  # Smaller, faster run: 3072 and 4096 bit moduli only
  python3 gen_moduli.py --max-bits 4096

  # Extra screening rounds, 512 bit steps
  python3 gen_moduli.py --iterations 1000 --bit-delta 512

  # OpenSSH 8.2+ (ssh-keygen -M generate / -M screen)
  python3 gen_moduli.py --syntax modern

  # Show the commands that would run
  python3 gen_moduli.py --dry-run
"""
    )

    parser.add_argument('--config', help='Config file path (default: moduli.yaml if present)')

    # Generation parameters
    parser.add_argument('--min-bits', type=parse_bits, help='Smallest modulus size in bits (default: 3072)')
    parser.add_argument('--max-bits', type=parse_bits, help='Largest modulus size in bits (default: 8192)')
    parser.add_argument('--bit-delta', type=parse_bits, help='Step between modulus sizes (default: 1024)')
    parser.add_argument('--iterations', '-a', type=int,
                        help='Primality test rounds during screening (default: 100)')

    # Scheduling
    parser.add_argument('--workers', type=int,
                        help='Parallel jobs (default: number of physical cores)')
    parser.add_argument('--poll-interval', type=float,
                        help='Seconds between checks for a free slot (default: 5)')
    parser.add_argument('--no-idle-priority', action='store_true',
                        help='Run ssh-keygen at normal priority')

    # Preflight
    parser.add_argument('--entropy-minimum', type=int,
                        help='Minimum kernel entropy in bits (default: 2000)')
    parser.add_argument('--skip-entropy-check', action='store_true',
                        help='Do not check the kernel entropy pool')

    # Program and files
    parser.add_argument('--ssh-keygen', help='Path to ssh-keygen')
    parser.add_argument('--syntax', choices=list(SYNTAXES),
                        help='ssh-keygen flag style: legacy (-G/-T) or modern (-M generate/screen)')
    parser.add_argument('--work-dir', help='Directory for intermediate and output files')

    # Behaviour
    parser.add_argument('--dry-run', action='store_true',
                        help='Print the commands that would be run and exit')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only print errors')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """
    Fold command-line overrides into a loaded configuration.

    Raises:
        ConfigError: If the resulting configuration is invalid
    """
    generation = config.generation
    if args.min_bits is not None:
        generation.min_bits = args.min_bits
    if args.max_bits is not None:
        generation.max_bits = args.max_bits
    if args.bit_delta is not None:
        generation.bit_delta = args.bit_delta
    if args.iterations is not None:
        generation.iterations = args.iterations

    scheduler = config.scheduler
    if args.workers is not None:
        scheduler.workers = args.workers
    if args.poll_interval is not None:
        scheduler.poll_interval = args.poll_interval
    if args.no_idle_priority:
        scheduler.idle_priority = False

    if args.entropy_minimum is not None:
        config.preflight.entropy_minimum = args.entropy_minimum
    if args.skip_entropy_check:
        config.preflight.skip = True

    if args.ssh_keygen:
        config.programs.ssh_keygen.path = args.ssh_keygen
    if args.syntax:
        config.programs.ssh_keygen.syntax = args.syntax
    if args.work_dir:
        config.execution.work_dir = args.work_dir

    if args.verbose:
        config.logging.level = 'DEBUG'

    config.validate()
    return config
