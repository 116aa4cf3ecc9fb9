"""auth/ -- Authentication core for Buildkit: credentials, sessions, email verification.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/config.
It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
