"""
Data Completion Tracker
Blueprint registry.
"""
