"""
Utility modules for the trivia feed engine.

- validation: JSON Schema validation of stored profiles with auto-repair
- persistence: JSON text boundary for profiles (dump_profile / load_profile)
- analytics: Preference and ledger statistics
- timestamps: UTC timestamp helpers

Submodules are imported directly (models depend on timestamps, and
analytics/persistence depend on models).
"""
