"""
Business logic layer coordinating repositories, cache and locks.
"""
