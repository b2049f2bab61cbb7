"""
Configuration subsystem for nexusbot.

Static configuration is loaded from environment variables (.env supported)
when this package is first imported. See `nexusbot.core.config.config` for
the complete list of keys.

Usage
-----
```python
from nexusbot.core.config import Config

port = Config.PORT
if Config.SESSION_DATA:
    ...
```
"""

from nexusbot.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
