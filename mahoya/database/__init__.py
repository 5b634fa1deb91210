"""
Mahoya persistence layer: ORM schema and the gamification store.
"""

from mahoya.database.store import GamificationStore, SqlAlchemyGamificationStore

__all__ = ["GamificationStore", "SqlAlchemyGamificationStore"]
