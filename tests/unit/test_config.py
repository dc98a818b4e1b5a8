"""
Unit tests for ServerConfig.
"""

import os

import pytest

from littlehttp.config import ServerConfig, WorkerModel


class TestDefaults:

    def test_defaults(self):
        config = ServerConfig()

        assert config.port == 8080
        assert config.host == "0.0.0.0"
        assert config.backlog == 128
        assert config.timeout is None
        assert config.debug is False
        assert config.daemonize is True
        assert config.block_size == 1024
        assert config.server_name == "LittleHTTP/1.0"

    def test_debug_does_not_daemonize(self):
        assert ServerConfig(debug=True).daemonize is False

    def test_effective_log_level(self):
        assert ServerConfig().effective_log_level == "INFO"
        assert ServerConfig(debug=True).effective_log_level == "DEBUG"
        assert ServerConfig(debug=True, log_level="warning").effective_log_level == "WARNING"


class TestWorkerModel:

    def test_default_is_fork_where_available(self):
        expected = WorkerModel.FORK if hasattr(os, "fork") else WorkerModel.THREAD
        assert WorkerModel.default() is expected

    def test_default_without_fork(self, monkeypatch):
        monkeypatch.delattr(os, "fork", raising=False)
        assert WorkerModel.default() is WorkerModel.THREAD

    def test_from_cli_value(self):
        assert WorkerModel("thread") is WorkerModel.THREAD


class TestValidate:

    def test_document_root_made_absolute(self, docroot, monkeypatch):
        monkeypatch.chdir(docroot.parent)
        config = ServerConfig(document_root="www")

        config.validate()

        assert os.path.isabs(config.document_root)
        assert os.path.samefile(config.document_root, docroot)

    def test_document_root_must_exist(self, tmp_path):
        config = ServerConfig(document_root=str(tmp_path / "missing"))
        with pytest.raises(ValueError, match="not a directory"):
            config.validate()

    def test_document_root_must_be_directory(self, docroot):
        config = ServerConfig(document_root=str(docroot / "hello.txt"))
        with pytest.raises(ValueError, match="not a directory"):
            config.validate()

    @pytest.mark.parametrize("overrides, message", [
        ({"port": -1}, "Invalid port"),
        ({"port": 65536}, "Invalid port"),
        ({"backlog": 0}, "backlog"),
        ({"timeout": 0}, "timeout"),
        ({"max_line_length": 8}, "max_line_length"),
        ({"max_body_length": -1}, "max_body_length"),
        ({"block_size": 0}, "block_size"),
    ])
    def test_invalid_values(self, docroot, overrides, message):
        config = ServerConfig(document_root=str(docroot), **overrides)
        with pytest.raises(ValueError, match=message):
            config.validate()

    @pytest.mark.parametrize("user, group", [
        (None, None),
        ("www", None),
        (None, "www"),
    ])
    def test_chroot_needs_user_and_group(self, docroot, user, group):
        config = ServerConfig(document_root=str(docroot), chroot=True, user=user, group=group)
        with pytest.raises(ValueError, match="use both of --user and --group"):
            config.validate()

    def test_fork_model_needs_fork(self, docroot, monkeypatch):
        config = ServerConfig(document_root=str(docroot), worker_model=WorkerModel.FORK)
        monkeypatch.delattr(os, "fork", raising=False)

        with pytest.raises(ValueError, match="fork"):
            config.validate()

    def test_valid(self, docroot):
        config = ServerConfig(
            document_root=str(docroot),
            port=0,
            timeout=2.5,
            chroot=True,
            user="www",
            group="www",
        )
        config.validate()
