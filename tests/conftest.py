"""Shared fixtures for the jar-flattener test suite."""

from collections.abc import Callable, Iterator
import logging
import pathlib
import struct
import zipfile

import pytest

from jar_flattener.config import PROFILES, ResolvedConfig
from jar_flattener.target import LINUX_X64, Target


def class_bytes(major: int) -> bytes:
    """Minimal class file header with the given major version."""

    return struct.pack(">IHH", 0xCAFEBABE, 0, major) + b"\x00" * 16


@pytest.fixture(autouse=True)
def isolate_env(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> pathlib.Path:
    """Point every cache at a per-test directory and drop launcher variables."""

    cache_root: pathlib.Path = tmp_path / "cache-root"
    monkeypatch.setenv("JAR_FLATTENER_CACHE_DIR", str(cache_root))
    monkeypatch.delenv("JAR_FLATTENER_HOME", raising=False)
    monkeypatch.delenv("JAR_FLATTENER_QUIET", raising=False)
    return cache_root


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Drop handlers the CLI installs so they never outlive a captured stream."""

    yield
    logger: logging.Logger = logging.getLogger("jar_flattener")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def make_jar(tmp_path: pathlib.Path) -> Callable[..., pathlib.Path]:
    """Factory writing small jars with real class file headers."""

    def _make(
        name: str = "app.jar",
        *,
        major: int = 52,
        entries: dict[str, bytes] | None = None,
    ) -> pathlib.Path:
        path: pathlib.Path = tmp_path / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\nMain-Class: com.example.Main\n")
            zf.writestr("com/example/Main.class", class_bytes(major))
            for entry_name, data in (entries or {}).items():
                zf.writestr(entry_name, data)
        return path

    return _make


@pytest.fixture
def make_config(tmp_path: pathlib.Path) -> Callable[..., ResolvedConfig]:
    """Factory for resolved configurations with test-friendly defaults."""

    def _make(
        input_path: pathlib.Path,
        *,
        output: pathlib.Path | None = None,
        java_version: int = 21,
        java_version_explicit: bool = False,
        target: Target = LINUX_X64,
        jvm_args: tuple[str, ...] = (),
        shrink: bool = False,
        profile: str = "server",
        appcds: bool = False,
        crac: bool = False,
        compact_banner: bool = False,
    ) -> ResolvedConfig:
        return ResolvedConfig(
            input=input_path,
            output=output if output is not None else tmp_path / "out" / "app",
            java_version=java_version,
            java_version_explicit=java_version_explicit,
            target=target,
            jvm_args=jvm_args,
            shrink=shrink,
            profile=PROFILES[profile],
            appcds=appcds,
            crac=crac,
            compact_banner=compact_banner,
        )

    return _make
