"""
Evaluation Package
==================

Contains the seed bank and the audit harness that checks generation health
across ranks.
"""

from shift_engine.evaluation.run_audit import audit_ranks, load_seed_bank

__all__ = ["audit_ranks", "load_seed_bank"]
