"""Build configuration.

Options come from two places: the command line and an optional
``jar-flattener.toml`` in the project directory. :func:`resolve_config` merges
them into one immutable :class:`ResolvedConfig` before any stage runs, so no
component downstream deals with overrides.

Precedence per option is CLI, then project file, then default. The boolean
"enable" flags (``shrink``, ``crac``, ``compact_banner``) are OR-combined, and
``--no-appcds`` always wins over the project file.
"""

from dataclasses import dataclass
import pathlib
import tomllib
from typing import Any

from jar_flattener.errors import ConfigError
from jar_flattener.target import Target, current_target, parse_target

PROJECT_FILE_NAME: str = "jar-flattener.toml"

DEFAULT_JAVA_VERSION: int = 21
DEFAULT_PROFILE: str = "server"
MIN_JAVA_VERSION: int = 8


@dataclass(frozen=True, slots=True)
class JvmProfile:
    """A named set of JVM flags baked into the launcher.

    :ivar name: Profile name.
    :ivar flags: Flags passed to ``java`` before user JVM args.
    """

    name: str
    flags: tuple[str, ...]


PROFILES: dict[str, JvmProfile] = {
    "server": JvmProfile(name="server", flags=()),
    "cli": JvmProfile(name="cli", flags=("-XX:+UseSerialGC", "-XX:TieredStopAtLevel=1")),
}


def parse_profile(value: str) -> JvmProfile:
    """Look up a JVM profile by name.

    :param value: Profile name.
    :returns: The profile.
    :raises ConfigError: If the profile is unknown.
    """

    profile: JvmProfile | None = PROFILES.get(value.strip().lower())
    if profile is None:
        raise ConfigError(f"invalid profile: {value}. Use: {', '.join(sorted(PROFILES))}")
    return profile


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Raw ``build`` options as given on the command line.

    ``None`` (or an empty tuple) means "not supplied".
    """

    input: pathlib.Path
    output: pathlib.Path
    java_version: int | None = None
    target: str | None = None
    jvm_args: tuple[str, ...] = ()
    shrink: bool = False
    profile: str | None = None
    no_appcds: bool = False
    crac: bool = False
    compact_banner: bool = False
    verbose: int = 0


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """Values read from ``jar-flattener.toml``. Absent keys are ``None``."""

    java_version: int | None = None
    target: str | None = None
    jvm_args: tuple[str, ...] | None = None
    shrink: bool | None = None
    profile: str | None = None
    appcds: bool | None = None
    crac: bool | None = None
    compact_banner: bool | None = None


@dataclass(frozen=True, slots=True)
class ResolvedConfig:
    """Fully resolved, immutable build configuration.

    :ivar input: Project directory or ``.jar`` file.
    :ivar output: Output executable path.
    :ivar java_version: Requested (or default) Java feature version.
    :ivar java_version_explicit: Whether the version was requested rather than defaulted.
    :ivar target: Target platform.
    :ivar jvm_args: Extra JVM args, in order.
    :ivar shrink: Shrink the uberjar before packing.
    :ivar profile: JVM profile.
    :ivar appcds: Generate and ship an AppCDS archive.
    :ivar crac: Attempt a CRaC checkpoint.
    :ivar compact_banner: Print a one-line banner instead of the full one.
    :ivar verbose: Verbosity count.
    """

    input: pathlib.Path
    output: pathlib.Path
    java_version: int
    java_version_explicit: bool
    target: Target
    jvm_args: tuple[str, ...]
    shrink: bool
    profile: JvmProfile
    appcds: bool
    crac: bool
    compact_banner: bool
    verbose: int = 0

    @property
    def is_jar_input(self) -> bool:
        return self.input.suffix.lower() == ".jar"


_PROJECT_KEYS: dict[str, type] = {
    "java_version": int,
    "target": str,
    "jvm_args": list,
    "shrink": bool,
    "profile": str,
    "appcds": bool,
    "crac": bool,
    "compact_banner": bool,
}


def load_project_config(project_dir: pathlib.Path) -> ProjectConfig | None:
    """Load ``jar-flattener.toml`` from a project directory.

    :param project_dir: Directory to look in.
    :returns: Parsed config, or ``None`` when the file does not exist.
    :raises ConfigError: If the file is malformed or has unknown/mistyped keys.
    """

    path: pathlib.Path = project_dir / PROJECT_FILE_NAME
    if path.is_file() is False:
        return None

    try:
        with open(path, "rb") as f:
            data: dict[str, Any] = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid {PROJECT_FILE_NAME}: {e}") from e

    for key, value in data.items():
        expected: type | None = _PROJECT_KEYS.get(key)
        if expected is None:
            raise ConfigError(f"unknown key {key!r} in {path}")
        # bool is a subclass of int; java_version = true must not pass.
        if isinstance(value, expected) is False or (expected is int and isinstance(value, bool)):
            raise ConfigError(f"{key!r} in {path} must be of type {expected.__name__}")

    jvm_args: tuple[str, ...] | None = None
    if "jvm_args" in data:
        raw_args: list[Any] = data["jvm_args"]
        if all(isinstance(a, str) for a in raw_args) is False:
            raise ConfigError(f"'jvm_args' in {path} must be a list of strings")
        jvm_args = tuple(raw_args)

    return ProjectConfig(
        java_version=data.get("java_version"),
        target=data.get("target"),
        jvm_args=jvm_args,
        shrink=data.get("shrink"),
        profile=data.get("profile"),
        appcds=data.get("appcds"),
        crac=data.get("crac"),
        compact_banner=data.get("compact_banner"),
    )


def resolve_config(
    *,
    cli: CliOptions,
    project: ProjectConfig | None,
    host_target: Target | None = None,
) -> ResolvedConfig:
    """Merge CLI options, project file and defaults.

    :param cli: Command line options.
    :param project: Project file values, if a project file exists.
    :param host_target: Default target; detected from the host when ``None``.
    :returns: Resolved configuration.
    :raises ConfigError: If any value is invalid.
    """

    proj: ProjectConfig = project if project is not None else ProjectConfig()

    target: Target
    if cli.target is not None:
        target = parse_target(cli.target)
    elif proj.target is not None:
        try:
            target = parse_target(proj.target)
        except ConfigError as e:
            raise ConfigError(f"{e} (from {PROJECT_FILE_NAME})") from e
    elif host_target is not None:
        target = host_target
    else:
        target = current_target()

    java_version_explicit: bool = cli.java_version is not None or proj.java_version is not None
    java_version: int = DEFAULT_JAVA_VERSION
    if cli.java_version is not None:
        java_version = cli.java_version
    elif proj.java_version is not None:
        java_version = proj.java_version
    if java_version < MIN_JAVA_VERSION:
        raise ConfigError(f"invalid Java version {java_version}; expected {MIN_JAVA_VERSION} or newer")

    jvm_args: tuple[str, ...] = cli.jvm_args
    if len(jvm_args) == 0 and proj.jvm_args is not None:
        jvm_args = proj.jvm_args

    profile_name: str = DEFAULT_PROFILE
    if cli.profile is not None:
        profile_name = cli.profile
    elif proj.profile is not None:
        profile_name = proj.profile

    appcds: bool
    if cli.no_appcds is True:
        appcds = False
    else:
        appcds = proj.appcds if proj.appcds is not None else True

    return ResolvedConfig(
        input=cli.input,
        output=cli.output,
        java_version=java_version,
        java_version_explicit=java_version_explicit,
        target=target,
        jvm_args=jvm_args,
        shrink=cli.shrink or proj.shrink is True,
        profile=parse_profile(profile_name),
        appcds=appcds,
        crac=cli.crac or proj.crac is True,
        compact_banner=cli.compact_banner or proj.compact_banner is True,
        verbose=cli.verbose,
    )
