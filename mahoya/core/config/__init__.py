"""
Configuration subsystem for Mahoya.

Static configuration is loaded from environment variables (with .env
support) at import time and exposed through the ``Config`` class.

Usage
-----
```python
from mahoya.core.config import Config

if Config.is_production():
    ...
prefix = Config.STORAGE_KEY_PREFIX
```
"""

from mahoya.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
