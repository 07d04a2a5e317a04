"""
Core utilities shared across the marketplace API.

Configuration, logging, error shaping, rate limiting, password hashing and
the mail adapter live here so routers and services do not reach for FastAPI
or os.environ directly.
"""
