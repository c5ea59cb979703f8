"""
moduli_gen - parallel OpenSSH moduli generation.

Runs ssh-keygen candidate generation and screening across a range of
bit sizes on all physical cores, then merges the screened moduli into
a single timestamped file.
"""

__version__ = "1.0.0"
