"""Rate limiting adapters.

This package holds the fixed-window limiter and its storage abstraction.
The limiter only talks to ``AbstractRateLimitStore`` so the process-local
dict can later be replaced by a shared store without touching callers.
"""
