"""
Shift Engine
============

Procedural level generation, validation and bonus objective scoring for the
Daily Run and Random/Contract Run modes.

- runs_core: seeds, rank envelopes, the generator, sessions and the evaluator
- evaluation: seed-bank audit harness

All tunable parameters live in run_config.yaml.
"""
