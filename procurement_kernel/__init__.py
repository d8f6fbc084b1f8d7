"""
Procurement Kernel

Stage-gated procurement lifecycle tracking with:
- Linear stage state machine (planning -> award)
- Field-level and PPDA regulatory validation
- Content-hashed document versioning with rollback
- Append-only audit trail with compliance reporting
"""

__version__ = "0.1.0"
