"""
hackjudge - two-round hackathon judging core.

Allocation of judges to teams, rubric score ledger, and per-round
result snapshots with deterministic ranking.
"""
__version__ = "1.0.0"
