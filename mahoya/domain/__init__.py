"""
Domain models for Mahoya gamification.
"""
