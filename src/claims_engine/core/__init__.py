"""
Core enumerations, exceptions and engine settings.
"""
