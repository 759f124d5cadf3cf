from .config_manager import RAGConfig

__all__ = ["RAGConfig"]
