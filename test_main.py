"""Tests for the command line entry point."""

import pytest

import main
from config import settings
from errors import StorageUnavailable


def test_parse_args_defaults():
    args = main.parse_args([])
    assert args.headless is False
    assert args.port == settings.API_PORT


def test_parse_args_port_and_headless():
    args = main.parse_args(["--headless", "--port=9090"])
    assert args.headless is True
    assert args.port == 9090


@pytest.mark.parametrize("port", ["-1", "70000", "eighty"])
def test_parse_args_rejects_bad_port(port):
    with pytest.raises(SystemExit):
        main.parse_args([f"--port={port}"])


def test_main_exits_1_when_storage_unavailable(monkeypatch):
    class BrokenStore:
        @classmethod
        def from_settings(cls, settings):
            raise StorageUnavailable("Cannot create data directory")

    monkeypatch.setattr(main, "Store", BrokenStore)
    assert main.main(["--headless"]) == 1


def test_main_exits_1_when_server_does_not_start(monkeypatch, tmp_path):
    class FailingServer:
        def __init__(self, config):
            self.started = False

        def run(self):
            raise SystemExit(1)

    monkeypatch.setattr(settings, "DATA_DIR", tmp_path)
    monkeypatch.setattr(main.uvicorn, "Server", FailingServer)
    assert main.main(["--headless", "--port=8080"]) == 1
    assert (tmp_path / settings.DATABASE_FILENAME).exists()
