from app.platform.repository import BaseRepository

__all__ = ["BaseRepository"]
