"""Rate limiting adapters.

The admission gate depends on the abstract limiter so the in-memory sliding
window can be replaced by a shared store without touching the gate.
"""
