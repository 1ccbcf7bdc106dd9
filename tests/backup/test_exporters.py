"""Tests for the database, files and configuration exporters."""

import asyncio
import json
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from nano_backup.config import BackupConfig, DatabaseConfig, StorageConfig
from nano_backup.exporters import ConfigExporter, FilesExporter, MongoExporter, redact_settings
from nano_backup.exporters.config_exporter import REDACTED


def _process(returncode=0, stderr=b""):
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(b"", stderr))
    process.kill = MagicMock()
    process.wait = AsyncMock()
    return process


@pytest.fixture
def db_config():
    return DatabaseConfig(uri="mongodb://backup:hunter2@db:27017/app")


class TestMongoExporter:

    @pytest.mark.asyncio
    async def test_export_invokes_dump_tool(self, db_config, tmp_path):
        process = _process()
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as spawn:
            dump_dir = await MongoExporter(db_config).export(tmp_path / "dump")

        assert dump_dir == tmp_path / "dump"
        assert dump_dir.is_dir()
        args = spawn.call_args.args
        assert args == ("mongodump", f"--uri={db_config.uri}", f"--out={tmp_path / 'dump'}")

    @pytest.mark.asyncio
    async def test_restore_drops_existing_collections(self, db_config, tmp_path):
        process = _process()
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as spawn:
            await MongoExporter(db_config).restore(tmp_path)

        args = spawn.call_args.args
        assert args[0] == "mongorestore"
        assert "--drop" in args
        assert args[-1] == str(tmp_path)

    @pytest.mark.asyncio
    async def test_restore_requires_dump_dir(self, db_config, tmp_path):
        with pytest.raises(FileNotFoundError):
            await MongoExporter(db_config).restore(tmp_path / "missing")

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_with_masked_uri(self, db_config, tmp_path):
        stderr = b"Failed: could not connect to mongodb://backup:hunter2@db:27017/app"
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=_process(1, stderr))):
            with pytest.raises(RuntimeError) as exc_info:
                await MongoExporter(db_config).export(tmp_path / "dump")

        message = str(exc_info.value)
        assert "exited with code 1" in message
        assert "hunter2" not in message

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, db_config, tmp_path):
        process = _process()

        async def hang():
            await asyncio.sleep(10)

        process.communicate = AsyncMock(side_effect=hang)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(MongoExporter(db_config).export(tmp_path / "dump"), 0.05)

        process.kill.assert_called_once()
        process.wait.assert_awaited_once()

    def test_statistics(self, db_config, tmp_path):
        (tmp_path / "app").mkdir()
        (tmp_path / "app" / "users.bson").write_bytes(b"x" * 10)
        (tmp_path / "app" / "users.metadata.json").write_bytes(b"{}")
        (tmp_path / "app" / "orders.bson").write_bytes(b"y" * 5)

        stats = MongoExporter(db_config).get_statistics(tmp_path)
        assert stats == {"collections": 2, "dump_bytes": 17}


class TestFilesExporter:

    @pytest.mark.asyncio
    async def test_absent_or_empty_uploads(self, tmp_path):
        assert await FilesExporter(str(tmp_path / "missing")).export() is None

        (tmp_path / "empty" / "sub").mkdir(parents=True)
        assert await FilesExporter(str(tmp_path / "empty")).export() is None

    @pytest.mark.asyncio
    async def test_export_returns_uploads_dir(self, tmp_path):
        uploads = tmp_path / "uploads"
        uploads.mkdir()
        (uploads / "avatar.png").write_bytes(b"png")

        exporter = FilesExporter(str(uploads))
        assert await exporter.export() == uploads
        assert exporter.get_statistics(uploads) == {"files": 1, "bytes": 3}

    @pytest.mark.asyncio
    async def test_restore_swaps_directory(self, tmp_path):
        uploads = tmp_path / "uploads"
        uploads.mkdir()
        (uploads / "stale.txt").write_text("old")

        restored = tmp_path / "staging" / "extracted"
        (restored / "docs").mkdir(parents=True)
        (restored / "docs" / "report.pdf").write_bytes(b"pdf")

        await FilesExporter(str(uploads)).restore(restored)

        assert (uploads / "docs" / "report.pdf").read_bytes() == b"pdf"
        assert not (uploads / "stale.txt").exists()
        assert sorted(p.name for p in tmp_path.iterdir()) == ["staging", "uploads"]

    @pytest.mark.asyncio
    async def test_restore_creates_missing_uploads_dir(self, tmp_path):
        restored = tmp_path / "extracted"
        restored.mkdir()
        (restored / "a.txt").write_text("a")

        await FilesExporter(str(tmp_path / "data" / "uploads")).restore(restored)
        assert (tmp_path / "data" / "uploads" / "a.txt").read_text() == "a"


class TestConfigExporter:

    def test_redact_settings(self):
        settings = {
            "encryption_key": "0123456789abcdef",
            "retention_days": 90,
            "database": {"uri": "mongodb://admin:s3cret@db:27017/app"},
            "storage": {"redis_password": "pw", "redis_url": "redis://:pw@cache:6379", "bucket": "b"},
            "api_token": "tok",
            "empty_secret": None,
        }

        redacted = redact_settings(settings)

        assert redacted["encryption_key"] == REDACTED
        assert redacted["retention_days"] == 90
        assert redacted["database"]["uri"] == f"mongodb://admin:{REDACTED}@db:27017/app"
        assert redacted["storage"]["redis_password"] == REDACTED
        assert "pw" not in redacted["storage"]["redis_url"]
        assert redacted["storage"]["bucket"] == "b"
        assert redacted["api_token"] == REDACTED
        assert redacted["empty_secret"] is None
        # Input is untouched
        assert settings["encryption_key"] == "0123456789abcdef"

    @pytest.mark.asyncio
    async def test_export_snapshot_has_no_secrets(self, tmp_path):
        config = BackupConfig(
            encryption_key="super-secret-operator-key",
            database=DatabaseConfig(uri="mongodb://admin:s3cret@db/app"),
            storage=StorageConfig(redis_password="redis-pw"),
            environment="production",
        )
        exporter = ConfigExporter(config.to_dict, "production", "1.2.3", str(tmp_path / "restored"))

        path = await exporter.export(tmp_path / "snapshot.json")
        text = path.read_text()
        data = json.loads(text)

        assert data["environment"] == "production"
        assert data["version"] == "1.2.3"
        assert "timestamp" in data
        assert data["settings"]["retention_days"] == 90
        for secret in ("super-secret-operator-key", "s3cret", "redis-pw"):
            assert secret not in text

    @pytest.mark.asyncio
    async def test_restore_writes_for_review(self, tmp_path):
        exporter = ConfigExporter(lambda: {"feature": True}, "staging", "1.0", str(tmp_path / "restored"))
        snapshot = await exporter.export(tmp_path / "snapshot.json")

        target = await exporter.restore(snapshot, "full-backup-weekly-x")

        assert target == tmp_path / "restored" / "full-backup-weekly-x-config.json"
        assert json.loads(target.read_text())["settings"] == {"feature": True}
        assert not Path(str(target) + ".partial").exists()
