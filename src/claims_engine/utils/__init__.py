"""
Logging and HTTP error helpers.
"""
