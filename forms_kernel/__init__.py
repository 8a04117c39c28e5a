"""
Forms Kernel - response approval workflow core

Moves a submitted answer set for a form through:
- Draft editing by its submitter
- Multi-reviewer review with a single-"no" veto
- An optional final-approval gate
- Atomic, conflict-checked persistence of every decision
"""

__version__ = "0.1.0"
