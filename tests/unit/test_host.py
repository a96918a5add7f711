"""
Tests for Host bootstrap.

This test suite covers:
1. Boot order (modules, extensions, applications)
2. Application start tolerance and the application manager
3. Module defaults and cache clearing
4. Logging setup
5. Command line entry point
"""

import logging

import pytest

from modhost import ApplicationError, Host, HostConfig
from modhost.application import ApplicationManager
from modhost.cli import main
from modhost.config import ApplicationConfig
from modhost.extension import MissingModuleError
from modhost.log import HostLogHandler, configure_logging
from modhost.module import ModuleDispatcher, UnhandledModuleTypeError, UninstallError
from modhost.resolver import ArtifactResolver, ResolutionError


def make_host(tmp_path, runtime, handlers, **overrides) -> Host:
    config = HostConfig(base_dir=str(tmp_path), **overrides)
    return Host(config, runtime=runtime, handlers=handlers)


class TestHostBoot:
    """Test Host.init() and Host.start()."""

    def test_boot_order(self, tmp_path, make_runtime, make_handler, make_extension):
        """Modules, then extensions, then applications."""
        (tmp_path / "mod.py").write_text("")
        (tmp_path / "app.py").write_text("")
        (tmp_path / "inner.py").write_text("")
        make_extension(tmp_path / "ext.zip", "ext", modules=["inner.py"])
        runtime = make_runtime()
        host = make_host(
            tmp_path,
            runtime,
            [make_handler(runtime)],
            modules=["mod.py"],
            extensions=["ext.zip"],
            applications=[ApplicationConfig(url="app.py")],
        )

        host.init()
        host.start()

        assert runtime.installed == ["mod.py", "inner.py", "ext.zip", "app.py"]
        assert host.extensions.is_installed("ext.zip")
        assert len(host.applications.ids()) == 1

    def test_failing_application_is_skipped(
        self, tmp_path, make_runtime, make_handler, caplog
    ):
        (tmp_path / "good.py").write_text("")
        runtime = make_runtime()
        host = make_host(
            tmp_path,
            runtime,
            [make_handler(runtime)],
            applications=[
                ApplicationConfig(url="missing.py"),
                ApplicationConfig(url="good.py"),
            ],
        )

        with caplog.at_level(logging.WARNING, logger="modhost"):
            host.init()

        assert runtime.installed == ["good.py"]
        assert "Can't start application missing.py" in caplog.text

    def test_failing_extension_aborts_boot(self, tmp_path, make_runtime, make_handler, make_extension):
        make_extension(tmp_path / "ext.zip", "ext", modules=["missing.py"])
        runtime = make_runtime()
        host = make_host(
            tmp_path,
            runtime,
            [make_handler(runtime)],
            extensions=["ext.zip"],
            applications=[ApplicationConfig(url="ext.zip")],
        )

        with pytest.raises(MissingModuleError):
            host.init()
        assert runtime.installed == []

    def test_failing_module_aborts_boot(self, tmp_path, make_runtime, make_handler):
        runtime = make_runtime()
        host = make_host(tmp_path, runtime, [make_handler(runtime)], modules=["nope.py"])

        with pytest.raises(ResolutionError):
            host.init()

    def test_banner_and_started_message(self, tmp_path, make_runtime, caplog):
        host = make_host(tmp_path, make_runtime(), [], banner="Custom banner")

        with caplog.at_level(logging.INFO, logger="modhost"):
            host.init()
            host.start()

        assert "Custom banner" in caplog.text
        assert "Base directory" in caplog.text
        assert "Started in" in caplog.text
        assert "process running for" in caplog.text

    def test_clear_cache(self, tmp_path, make_runtime):
        cache_entry = tmp_path / "cache" / "abc" / "web.zip"
        cache_entry.parent.mkdir(parents=True)
        cache_entry.write_bytes(b"")
        host = make_host(tmp_path, make_runtime(), [], cache_dir="cache", clear_cache=True)

        host.init()

        assert not cache_entry.exists()

    def test_add_module_merges_defaults(self, tmp_path, make_runtime, make_handler):
        (tmp_path / "m.py").write_text("")
        runtime = make_runtime()
        host = make_host(
            tmp_path,
            runtime,
            [make_handler(runtime)],
            module_defaults={"env": "test", "debug": False},
        )

        (handle,) = host.add_module("m.py", properties={"debug": True})

        assert handle.properties == {"env": "test", "debug": True}
        host.remove_module("m.py")
        assert runtime.uninstalled == ["m.py"]

    def test_add_unclaimed_module(self, tmp_path, make_runtime, make_handler):
        (tmp_path / "m.py").write_text("")
        runtime = make_runtime()
        host = make_host(tmp_path, runtime, [make_handler(runtime, suffix=".whl")])

        assert host.add_module("m.py") == []

    def test_extension_entry_points(self, tmp_path, make_runtime, make_handler, make_extension):
        (tmp_path / "m.py").write_text("")
        make_extension(tmp_path / "ext.zip", "ext", modules=["m.py"])
        runtime = make_runtime()
        with make_host(tmp_path, runtime, [make_handler(runtime)]) as host:
            host.load_extension("ext.zip")
            host.remove_extension("ext.zip", recursive=True)

        assert runtime.uninstalled == ["m.py", "ext.zip"]
        assert not host.extensions.is_installed("ext.zip")


class TestApplicationManager:
    """Test top-level applications."""

    @pytest.fixture
    def manager(self, tmp_path, make_runtime, make_handler):
        runtime = make_runtime()
        dispatcher = ModuleDispatcher(
            [make_handler(runtime, "plugin"), make_handler(runtime, "source", ".py")]
        )
        resolver = ArtifactResolver(cache_dir=tmp_path / "cache", base_dir=tmp_path)
        (tmp_path / "app.py").write_text("")
        return ApplicationManager(resolver, dispatcher, runtime)

    def test_start_and_stop(self, manager):
        app_id = manager.start("app.py", properties={"port": 1})

        assert manager.ids() == [app_id]
        assert manager.get_url(app_id) == "app.py"
        assert manager.get_manager(app_id) == ["plugin", "source"]

        manager.stop(app_id)

        assert manager.ids() == []
        assert manager.runtime.uninstalled == ["app.py", "app.py"]

    def test_stop_retry_after_failure(self, manager, monkeypatch):
        """A retried stop only uninstalls what the failed stop left behind."""
        app_id = manager.start("app.py")
        uninstall = manager.runtime.uninstall

        def failing_uninstall(handle):
            if handle.kind == "source":
                raise UninstallError("Failed to stop module app.py")
            uninstall(handle)

        monkeypatch.setattr(manager.runtime, "uninstall", failing_uninstall)
        with pytest.raises(UninstallError):
            manager.stop(app_id)

        assert manager.ids() == [app_id]
        assert manager.get_manager(app_id) == ["source"]

        monkeypatch.setattr(manager.runtime, "uninstall", uninstall)
        manager.stop(app_id)

        assert manager.ids() == []
        assert manager.runtime.uninstalled == ["app.py", "app.py"]

    def test_start_with_type(self, manager):
        app_id = manager.start("app.py", type="source")
        assert manager.get_manager(app_id) == ["source"]

    def test_unclaimed_application(self, manager):
        with pytest.raises(UnhandledModuleTypeError, match="of type wheel"):
            manager.start("app.py", type="wheel")
        assert manager.ids() == []

    def test_unknown_id(self, manager):
        with pytest.raises(ApplicationError, match="Unknown application id"):
            manager.stop("nope")
        with pytest.raises(ApplicationError):
            manager.get_url("nope")


class TestLogging:
    """Test logging setup."""

    def test_single_handler(self):
        """Reconfiguring replaces our handler and leaves foreign handlers alone."""
        logger = configure_logging("debug", "%(message)s")
        foreign = logging.NullHandler()
        logger.addHandler(foreign)
        configure_logging("INFO")

        ours = [h for h in logger.handlers if isinstance(h, HostLogHandler)]
        assert len(ours) == 1
        assert foreign in logger.handlers
        assert logger.level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING

        for handler in [*ours, foreign]:
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


class TestCLI:
    """Test the modhost command."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        yield
        logger = logging.getLogger("modhost")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    def test_boot_from_config(self, tmp_path, capsys):
        (tmp_path / "hello.py").write_text("GREETING = 'hi'\n")
        config = tmp_path / "host.toml"
        config.write_text(f'[modhost]\nbase_dir = "{tmp_path.as_posix()}"\n')

        code = main(["-c", str(config), "-m", "hello.py"])

        out = capsys.readouterr().out
        assert code == 0
        assert "Modules (1):" in out
        assert "hello (source, active)" in out

    def test_init_config(self, tmp_path, capsys):
        target = tmp_path / "modhost.toml"

        assert main(["--init-config", str(target)]) == 0
        assert target.exists()
        assert main(["--init-config", str(target)]) == 1
        assert "Refusing to overwrite" in capsys.readouterr().err

    def test_error_exit_code(self, tmp_path, capsys):
        config = tmp_path / "host.toml"
        config.write_text(f'[modhost]\nbase_dir = "{tmp_path.as_posix()}"\n')

        code = main(["-c", str(config), "-e", "missing.zip"])

        assert code == 1
        assert "Error: Artifact not found: missing.zip" in capsys.readouterr().err

    def test_missing_config(self, tmp_path, capsys):
        assert main(["-c", str(tmp_path / "nope.toml")]) == 1
        assert "Configuration file not found" in capsys.readouterr().err
