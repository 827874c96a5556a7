"""
Small helpers shared across layers: storage layout, hashing and formatting.
"""
