"""Storage factory for centralized backend creation."""

from typing import Callable, Dict, Type

from ..config import StorageConfig
from .base import BaseBackupCatalog, BaseObjectStore


class StorageFactory:
    """Factory for creating object stores and catalogs with validation and registration."""

    _object_store_backends: Dict[str, Callable[[], Type[BaseObjectStore]]] = {}
    _catalog_backends: Dict[str, Callable[[], Type[BaseBackupCatalog]]] = {}

    ALLOWED_OBJECT_STORE = {"s3", "local"}
    ALLOWED_CATALOG = {"json", "redis"}

    @classmethod
    def register_object_store(cls, name: str, backend_loader: Callable[[], Type[BaseObjectStore]]) -> None:
        """Register an object store backend.

        Args:
            name: Backend name (must be in ALLOWED_OBJECT_STORE)
            backend_loader: Function that returns the object store class

        Raises:
            ValueError: If backend name not in allowed list
        """
        if name not in cls.ALLOWED_OBJECT_STORE:
            raise ValueError(f"Backend {name} not in allowed object store backends: {cls.ALLOWED_OBJECT_STORE}")
        cls._object_store_backends[name] = backend_loader

    @classmethod
    def register_catalog(cls, name: str, backend_loader: Callable[[], Type[BaseBackupCatalog]]) -> None:
        """Register a catalog backend.

        Args:
            name: Backend name (must be in ALLOWED_CATALOG)
            backend_loader: Function that returns the catalog class

        Raises:
            ValueError: If backend name not in allowed list
        """
        if name not in cls.ALLOWED_CATALOG:
            raise ValueError(f"Backend {name} not in allowed catalog backends: {cls.ALLOWED_CATALOG}")
        cls._catalog_backends[name] = backend_loader

    @classmethod
    def create_object_store(cls, config: StorageConfig) -> BaseObjectStore:
        """Create the object store selected by ``config.object_store_backend``."""
        backend = config.object_store_backend
        if backend not in cls._object_store_backends:
            _register_backends()
            if backend not in cls._object_store_backends:
                raise ValueError(f"Unknown object store backend: {backend}. Available: {list(cls._object_store_backends.keys())}")

        backend_class = cls._object_store_backends[backend]()
        if backend == "s3":
            return backend_class(
                bucket=config.bucket,
                region=config.region,
                endpoint_url=config.endpoint_url,
                server_side_encryption=config.server_side_encryption,
                storage_class=config.storage_class,
            )
        return backend_class(root=config.local_root)

    @classmethod
    def create_catalog(cls, config: StorageConfig) -> BaseBackupCatalog:
        """Create the catalog selected by ``config.catalog_backend``."""
        backend = config.catalog_backend
        if backend not in cls._catalog_backends:
            _register_backends()
            if backend not in cls._catalog_backends:
                raise ValueError(f"Unknown catalog backend: {backend}. Available: {list(cls._catalog_backends.keys())}")

        backend_class = cls._catalog_backends[backend]()
        if backend == "redis":
            return backend_class(
                redis_url=config.redis_url,
                password=config.redis_password,
                prefix=config.redis_prefix,
                max_connections=config.redis_max_connections,
                socket_timeout=config.redis_socket_timeout,
            )
        return backend_class(path=config.catalog_path)


def _get_s3_store():
    """Lazy loader for S3 object store."""
    from .obj_s3 import S3ObjectStore
    return S3ObjectStore


def _get_local_store():
    """Lazy loader for local object store."""
    from .obj_local import LocalObjectStore
    return LocalObjectStore


def _get_json_catalog():
    """Lazy loader for JSON catalog."""
    from .catalog_json import JsonBackupCatalog
    return JsonBackupCatalog


def _get_redis_catalog():
    """Lazy loader for Redis catalog."""
    from .catalog_redis import RedisBackupCatalog
    return RedisBackupCatalog


def _register_backends():
    """Register built-in backends with lazy loaders. Called when factory is first used."""
    if not StorageFactory._object_store_backends:
        StorageFactory.register_object_store("s3", _get_s3_store)
        StorageFactory.register_object_store("local", _get_local_store)

    if not StorageFactory._catalog_backends:
        StorageFactory.register_catalog("json", _get_json_catalog)
        StorageFactory.register_catalog("redis", _get_redis_catalog)
