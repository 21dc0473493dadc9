"""
Core utilities shared across the Kardo service.

This package hosts configuration, logging setup, the error taxonomy, password
hashing, CSRF and rate limit helpers and the mail adapter. Routers and
services depend on these primitives instead of reading os.environ or
configuring libraries themselves.
"""
