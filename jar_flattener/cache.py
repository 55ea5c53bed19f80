"""Cache root layout and maintenance.

Everything jar-flattener keeps between runs lives under one root, by default
``~/.jar-flattener/cache``:

- ``jdk-<version>-<target>/``: downloaded JDKs (build machine).
- ``<sha256>/``: extracted payloads of generated executables (end-user machine;
  written by the launcher stub, same default root).

An entry directory only ever appears through an atomic rename of a fully
populated temporary directory, so a directory that exists with its marker
subdirectory is complete.
"""

from dataclasses import dataclass
import logging
import os
import pathlib
import shutil

logger: logging.Logger = logging.getLogger("jar_flattener.cache")

CACHE_DIR_ENV: str = "JAR_FLATTENER_CACHE_DIR"
TEMP_PREFIX: str = ".tmp-"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One keyed cache directory.

    :ivar key: Directory name.
    :ivar path: Directory path.
    :ivar populated: Whether the entry's marker subdirectory exists.
    :ivar size: Total size in bytes.
    """

    key: str
    path: pathlib.Path
    populated: bool
    size: int


def default_cache_root() -> pathlib.Path:
    """Resolve the cache root.

    :returns: ``$JAR_FLATTENER_CACHE_DIR`` if set, else ``~/.jar-flattener/cache``.
    """

    override: str | None = os.environ.get(CACHE_DIR_ENV)
    if override is not None and len(override) > 0:
        return pathlib.Path(override).expanduser()
    return pathlib.Path.home() / ".jar-flattener" / "cache"


def dir_size(path: pathlib.Path) -> int:
    """Total size of regular files below ``path`` (symlinks are not followed)."""

    total: int = 0
    for root_str, _dirs, files in os.walk(path):
        for name in files:
            p: pathlib.Path = pathlib.Path(root_str) / name
            try:
                if p.is_symlink() is False:
                    total += p.stat().st_size
            except OSError:
                continue
    return total


def _marker_for(key: str) -> str:
    return "bin" if key.startswith("jdk-") is True else "runtime"


def list_entries(root: pathlib.Path) -> list[CacheEntry]:
    """List cache entries under ``root``, skipping in-flight temporary directories.

    :param root: Cache root.
    :returns: Entries sorted by key.
    """

    if root.is_dir() is False:
        return []

    entries: list[CacheEntry] = []
    for child in sorted(root.iterdir()):
        if child.is_dir() is False or child.name.startswith(".") is True:
            continue
        entries.append(
            CacheEntry(
                key=child.name,
                path=child,
                populated=(child / _marker_for(child.name)).is_dir(),
                size=dir_size(child),
            )
        )
    return entries


def clean_cache(root: pathlib.Path) -> int | None:
    """Remove the whole cache root.

    :param root: Cache root.
    :returns: Bytes freed, or ``None`` if there was nothing to remove.
    """

    if root.exists() is False:
        return None
    size: int = dir_size(root)
    shutil.rmtree(root)
    logger.info(f"jar-flattener: removed {root}")
    return size
