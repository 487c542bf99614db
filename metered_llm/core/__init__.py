"""
Core modules for metered-llm.

This package contains pricing, token estimation, response caching,
rate limiting, retry/backoff and usage accounting.
"""
