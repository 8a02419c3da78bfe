from .repository import SqliteRepository

__all__ = ['SqliteRepository']
