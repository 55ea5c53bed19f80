import pytest

from jar_flattener.errors import ConfigError
from jar_flattener.target import (
    LINUX_AARCH64,
    LINUX_X64,
    MACOS_AARCH64,
    MACOS_X64,
    current_target,
    parse_target,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("linux-x64", LINUX_X64),
        ("Linux-AArch64", LINUX_AARCH64),
        (" macos-x64 ", MACOS_X64),
        ("x86_64-unknown-linux-gnu", LINUX_X64),
        ("aarch64-unknown-linux-musl", LINUX_AARCH64),
        ("aarch64-apple-darwin", MACOS_AARCH64),
        ("x86_64-apple-darwin", MACOS_X64),
    ],
)
def test_parse_target(value, expected):
    assert parse_target(value) == expected


@pytest.mark.parametrize("value", ["windows-x64", "riscv64-unknown-linux-gnu", "", "linux"])
def test_parse_target_rejects_unsupported(value):
    with pytest.raises(ConfigError, match="invalid target"):
        parse_target(value)


def test_adoptium_names():
    assert MACOS_AARCH64.adoptium_os == "mac"
    assert LINUX_X64.adoptium_os == "linux"
    assert LINUX_X64.adoptium_arch == "x64"
    assert str(MACOS_AARCH64) == "macos-aarch64"


@pytest.mark.parametrize(
    ("platform_tag", "machine", "expected"),
    [
        ("linux-x86_64", "x86_64", LINUX_X64),
        ("linux-aarch64", "aarch64", LINUX_AARCH64),
        ("macosx-14.0-arm64", "arm64", MACOS_AARCH64),
        ("macosx-10.9-universal2", "x86_64", MACOS_X64),
    ],
)
def test_current_target(monkeypatch, platform_tag, machine, expected):
    monkeypatch.setattr("jar_flattener.target.sysconfig.get_platform", lambda: platform_tag)
    monkeypatch.setattr("jar_flattener.target.platform.machine", lambda: machine)

    assert current_target() == expected


def test_current_target_unsupported_host(monkeypatch):
    monkeypatch.setattr("jar_flattener.target.sysconfig.get_platform", lambda: "win-amd64")

    with pytest.raises(ConfigError, match="Unsupported host platform"):
        current_target()
