"""
In-memory storage layer.

Holds the per-file parse cache, corpus loading and the snapshot cache.
"""
