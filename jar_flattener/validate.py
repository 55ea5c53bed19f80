"""Java version checks against the bytecode inside a jar."""

import logging
import pathlib
import struct
import zipfile

from jar_flattener.errors import ConfigError

logger: logging.Logger = logging.getLogger("jar_flattener.validate")

_CLASS_MAGIC: int = 0xCAFEBABE
# Class file major version 52 is Java 8.
_MAJOR_VERSION_OFFSET: int = 44


def max_class_major_version(jar_path: pathlib.Path) -> int | None:
    """Find the highest class-file major version in a jar.

    Multi-release entries under ``META-INF/versions/`` are ignored; the JVM only
    loads them on versions that support them.

    :param jar_path: Jar to scan.
    :returns: Highest major version, or ``None`` if the jar has no classes.
    :raises ConfigError: If the jar cannot be read.
    """

    best: int | None = None
    try:
        with zipfile.ZipFile(jar_path, "r") as zf:
            for info in zf.infolist():
                name: str = info.filename
                if name.endswith(".class") is False:
                    continue
                if name.startswith("META-INF/versions/") is True:
                    continue
                with zf.open(info, "r") as f:
                    header: bytes = f.read(8)
                if len(header) < 8:
                    continue
                magic, _minor, major = struct.unpack(">IHH", header)
                if magic != _CLASS_MAGIC:
                    continue
                if best is None or major > best:
                    best = major
    except (OSError, zipfile.BadZipFile) as e:
        raise ConfigError(f"Could not read {jar_path}: {e}") from e
    return best


def required_java_version(jar_path: pathlib.Path) -> int | None:
    """Minimum Java feature version able to load every class in the jar."""

    major: int | None = max_class_major_version(jar_path)
    if major is None:
        return None
    return major - _MAJOR_VERSION_OFFSET


def resolve_java_version(jar_path: pathlib.Path, requested: int, explicit: bool) -> int:
    """Decide which Java version to bundle.

    An explicit request that is too old for the jar's bytecode is an error. A
    defaulted version is raised to what the bytecode needs.

    :param jar_path: Application jar.
    :param requested: Configured Java version.
    :param explicit: Whether the version was explicitly requested.
    :returns: Java version to use.
    :raises ConfigError: If an explicit version cannot run the jar.
    """

    required: int | None = required_java_version(jar_path)
    if required is None:
        logger.info("jar-flattener: no class files found; keeping configured Java version")
        return requested

    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"jar-flattener: jar bytecode requires Java {required}")

    if required <= requested:
        return requested

    if explicit is True:
        raise ConfigError(
            f"JAR requires Java {required} (class file version {required + _MAJOR_VERSION_OFFSET}), "
            f"but Java {requested} was requested"
        )

    logger.warning(f"jar-flattener: JAR requires Java {required}; using it instead of the default {requested}")
    return required
