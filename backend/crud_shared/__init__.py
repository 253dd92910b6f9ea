"""
Shared infrastructure for the CRUD admin: configuration, logging,
exceptions, database sessions and security helpers.
"""
