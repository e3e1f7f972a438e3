"""
Feature modules live under this package.

Each module owns its models, service functions and JSON routes, while reusing
platform primitives (auth, RBAC, DB session, error handling).
"""
