"""
Shared utilities: exceptions.
"""
