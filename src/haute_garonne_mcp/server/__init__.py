from .app import build_server, create_app
from .lowlevel import LowLevelServer
from .session_registry import SessionRegistry

__all__ = ["LowLevelServer", "SessionRegistry", "build_server", "create_app"]
