"""Base test suites for storage backends."""

from .catalog_suite import BaseBackupCatalogTestSuite, CatalogContract
from .fixtures import (
    BASE_TIME,
    make_record,
    temp_storage_dir,
    sample_records,
)

__all__ = [
    "BaseBackupCatalogTestSuite",
    "CatalogContract",
    "BASE_TIME",
    "make_record",
    "temp_storage_dir",
    "sample_records",
]
