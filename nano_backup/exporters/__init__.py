"""Component exporters for backup/restore operations."""

from .mongo_exporter import MongoExporter
from .files_exporter import FilesExporter
from .config_exporter import ConfigExporter, redact_settings

__all__ = ["MongoExporter", "FilesExporter", "ConfigExporter", "redact_settings"]
