"""Authentication and authorization.

Users log in with username/password and receive an opaque session cookie.
The session lives server-side (user_sessions table); every request resolves
the cookie back to a User, which routes use for role and ownership checks.
"""
