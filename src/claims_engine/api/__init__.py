"""
HTTP surface of the adjudication engine.
"""
