"""
Core infrastructure layer for Mahoya.

- Configuration (``mahoya.core.config``)
- Structured logging (``mahoya.core.logging``)
- Async database engine and sessions (``mahoya.core.database``)
- Redis client (``mahoya.core.redis``)
- In-process event bus (``mahoya.core.event``)
"""
