"""
Application-level wiring: middlewares.
"""
