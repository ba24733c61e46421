"""Smoke test to verify the project scaffolding works."""

from __future__ import annotations


def test_import() -> None:
    import utctime

    assert utctime.__version__ == "0.1.0"


def test_cli_entrypoint() -> None:
    from utctime.cli import main

    assert callable(main)


def test_lazy_import_from_utctime() -> None:
    import utctime

    assert utctime.TimeServer is not None


def test_public_modules() -> None:
    from utctime.protocol import Dispatcher, Registry, RegistryBuilder
    from utctime.sync import SyncMonitor, SyncStatus
    from utctime.timeservice import snapshot_time

    assert Dispatcher is not None
    assert Registry is not None
    assert RegistryBuilder is not None
    assert SyncMonitor is not None
    assert SyncStatus is not None
    assert snapshot_time is not None
