from .sqlite_storage import SQLiteStorage, StorageError

__all__ = ['SQLiteStorage', 'StorageError']
