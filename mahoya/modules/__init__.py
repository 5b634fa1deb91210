"""
Gamification feature modules: progression, achievements, promotion, benefits.
"""
