"""
Infrastructure shared by the refresh pipeline: HTTP client and scheduler.
"""
