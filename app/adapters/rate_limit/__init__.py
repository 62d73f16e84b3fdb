"""Admission control adapters.

The API layer depends only on AbstractRateLimiter; the in-memory sliding
window limiter is process-local and resets on restart.
"""
