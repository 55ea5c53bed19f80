"""Uberjar size reduction.

The shrinker rewrites the jar without entries that are never loaded at runtime
(Maven metadata, jar signatures, build leftovers) and recompresses everything at
the highest deflate level. Classes and resources are never touched.
"""

from dataclasses import dataclass
import logging
import pathlib
import re
import zipfile

from jar_flattener.errors import ShrinkError

logger: logging.Logger = logging.getLogger("jar_flattener.shrink")

_DROP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^META-INF/maven/"),
    re.compile(r"^META-INF/[^/]+\.(SF|RSA|DSA|EC)$", re.IGNORECASE),
    re.compile(r"^META-INF/INDEX\.LIST$"),
    re.compile(r"(^|/)\.DS_Store$"),
    re.compile(r"\.java$"),
    re.compile(r"(^|/)project\.clj$"),
    re.compile(r"^META-INF/leiningen/"),
)


@dataclass(frozen=True, slots=True)
class ShrinkResult:
    """Outcome of shrinking.

    :ivar jar_path: Jar to use from here on (the original when shrinking did not help).
    :ivar original_size: Input size in bytes.
    :ivar shrunk_size: Output size in bytes.
    :ivar dropped_entries: Number of entries removed.
    """

    jar_path: pathlib.Path
    original_size: int
    shrunk_size: int
    dropped_entries: int


def _should_drop(name: str) -> bool:
    for pattern in _DROP_PATTERNS:
        if pattern.search(name) is not None:
            return True
    return False


def shrink_jar(jar_path: pathlib.Path, work_dir: pathlib.Path) -> ShrinkResult:
    """Write a reduced copy of ``jar_path`` into ``work_dir``.

    :param jar_path: Input uberjar.
    :param work_dir: Scratch directory owned by the caller.
    :returns: Shrink result. ``jar_path`` in the result is the original jar when
        the rewrite is not smaller.
    :raises ShrinkError: If the jar cannot be read or written.
    """

    original_size: int = jar_path.stat().st_size
    out_path: pathlib.Path = work_dir / f"{jar_path.stem}-shrunk.jar"
    dropped: int = 0

    try:
        with zipfile.ZipFile(jar_path, "r") as src, zipfile.ZipFile(
            out_path,
            "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=9,
        ) as dst:
            seen: set[str] = set()
            for info in src.infolist():
                name: str = info.filename
                if name in seen:
                    dropped += 1
                    continue
                seen.add(name)
                if _should_drop(name) is True:
                    dropped += 1
                    continue
                if info.is_dir() is True:
                    dst.writestr(info, b"")
                    continue
                # Stored entries stay stored so nested jars remain directly readable.
                compress_type: int = zipfile.ZIP_DEFLATED
                if info.compress_type == zipfile.ZIP_STORED:
                    compress_type = zipfile.ZIP_STORED
                out_info: zipfile.ZipInfo = zipfile.ZipInfo(name, date_time=info.date_time)
                out_info.external_attr = info.external_attr
                out_info.compress_type = compress_type
                dst.writestr(out_info, src.read(info), compress_type=compress_type, compresslevel=9)
    except (OSError, zipfile.BadZipFile) as e:
        raise ShrinkError(f"Could not shrink {jar_path}: {e}") from e

    shrunk_size: int = out_path.stat().st_size
    logger.info(
        f"jar-flattener: shrink dropped {dropped} entries ({original_size} -> {shrunk_size} bytes)"
    )

    if shrunk_size >= original_size:
        return ShrinkResult(
            jar_path=jar_path,
            original_size=original_size,
            shrunk_size=original_size,
            dropped_entries=dropped,
        )
    return ShrinkResult(
        jar_path=out_path,
        original_size=original_size,
        shrunk_size=shrunk_size,
        dropped_entries=dropped,
    )
