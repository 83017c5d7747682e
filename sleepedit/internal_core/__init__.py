from .config import EditorConfig, load_config
from .session_store import InMemorySessionStore

__all__ = ["EditorConfig", "load_config", "InMemorySessionStore"]
