"""Storage module with lazy loading support."""

from typing import TYPE_CHECKING

# Always import factory, interfaces and registration (lightweight)
from .base import BaseBackupCatalog, BaseObjectStore
from .factory import StorageFactory, _register_backends

# Type checking imports (no runtime cost)
if TYPE_CHECKING:
    from .catalog_json import JsonBackupCatalog
    from .catalog_redis import RedisBackupCatalog
    from .obj_local import LocalObjectStore
    from .obj_s3 import S3ObjectStore


def __getattr__(name):
    """Lazy import storage backends so aioboto3/redis load only when used."""
    if name == "S3ObjectStore":
        from .obj_s3 import S3ObjectStore
        return S3ObjectStore
    elif name == "LocalObjectStore":
        from .obj_local import LocalObjectStore
        return LocalObjectStore
    elif name == "JsonBackupCatalog":
        from .catalog_json import JsonBackupCatalog
        return JsonBackupCatalog
    elif name == "RedisBackupCatalog":
        from .catalog_redis import RedisBackupCatalog
        return RedisBackupCatalog
    else:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "StorageFactory",
    "_register_backends",
    "BaseObjectStore",
    "BaseBackupCatalog",
    "S3ObjectStore",
    "LocalObjectStore",
    "JsonBackupCatalog",
    "RedisBackupCatalog",
]
