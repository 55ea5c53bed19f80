"""Target platform resolution.

jar-flattener supports a closed set of targets:

- ``linux-x64``, ``linux-aarch64``
- ``macos-x64``, ``macos-aarch64``

User input may also be a Rust-like target triple (e.g.
``aarch64-unknown-linux-gnu``), which is mapped onto one of the above.
"""

from dataclasses import dataclass
import platform
import sysconfig

from jar_flattener.errors import ConfigError


@dataclass(frozen=True, slots=True)
class Target:
    """A supported build target.

    :ivar os: Operating system (``linux`` or ``macos``).
    :ivar arch: CPU architecture (``x64`` or ``aarch64``).
    """

    os: str
    arch: str

    @property
    def name(self) -> str:
        return f"{self.os}-{self.arch}"

    @property
    def adoptium_os(self) -> str:
        """OS name as used by the Adoptium API."""

        return "mac" if self.os == "macos" else self.os

    @property
    def adoptium_arch(self) -> str:
        """Architecture name as used by the Adoptium API."""

        return self.arch

    def __str__(self) -> str:
        return self.name


LINUX_X64: Target = Target(os="linux", arch="x64")
LINUX_AARCH64: Target = Target(os="linux", arch="aarch64")
MACOS_X64: Target = Target(os="macos", arch="x64")
MACOS_AARCH64: Target = Target(os="macos", arch="aarch64")

SUPPORTED_TARGETS: tuple[Target, ...] = (LINUX_X64, LINUX_AARCH64, MACOS_X64, MACOS_AARCH64)

_TARGET_HINT: str = "Use: " + ", ".join(t.name for t in SUPPORTED_TARGETS)

_ARCH_ALIASES: dict[str, str] = {
    "x64": "x64",
    "x86_64": "x64",
    "amd64": "x64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


def parse_target(value: str) -> Target:
    """Parse a target name or Rust-like triple.

    :param value: ``linux-x64`` style name or a triple such as ``x86_64-apple-darwin``.
    :returns: The matching target.
    :raises ConfigError: If the value does not name a supported target.
    """

    normalized: str = value.strip().lower()
    for target in SUPPORTED_TARGETS:
        if target.name == normalized:
            return target

    parts: list[str] = normalized.split("-")
    if len(parts) >= 3:
        arch: str | None = _ARCH_ALIASES.get(parts[0])
        os_part: str = parts[2]
        if arch is not None and os_part == "linux":
            return Target(os="linux", arch=arch)
        if arch is not None and os_part == "darwin":
            return Target(os="macos", arch=arch)

    raise ConfigError(f"invalid target: {value}. {_TARGET_HINT}")


def current_target() -> Target:
    """Detect the target matching the build host.

    :returns: Host target.
    :raises ConfigError: If the host platform is not a supported target.
    """

    plat: str = sysconfig.get_platform()
    os_name: str
    if plat.startswith("linux") is True:
        os_name = "linux"
    elif plat.startswith("macosx") is True:
        os_name = "macos"
    else:
        raise ConfigError(f"Unsupported host platform {plat!r}. {_TARGET_HINT}")

    # sysconfig reports "universal2" for fat macOS builds; ask the kernel instead.
    machine: str = plat.rsplit("-", 1)[-1]
    if machine == "universal2":
        machine = platform.machine()

    arch: str | None = _ARCH_ALIASES.get(machine.lower())
    if arch is None:
        raise ConfigError(f"Unsupported host architecture {machine!r}. {_TARGET_HINT}")
    return Target(os=os_name, arch=arch)
