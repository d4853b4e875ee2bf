"""
Team Accountability Tracker
Blueprint registry.
"""
