"""
Persistence layer: MongoDB connection, Redis cache/locks, repositories.
"""
