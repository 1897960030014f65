"""路由模块导出集合。"""

from . import auth, health, uploads, users

__all__ = [
    "auth",
    "health",
    "uploads",
    "users",
]
