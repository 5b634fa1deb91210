"""
Mahoya storefront gamification core.
"""

__version__ = "0.1.0"
