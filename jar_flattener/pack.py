"""Executable packing.

The output file is ``stub ++ payload``:

- ``payload`` is a gzip'd tar holding ``runtime/`` (the minimized runtime),
  ``app.jar``, and optionally ``crac/`` and ``app.jsa``;
- ``stub`` is the launcher script from :mod:`jar_flattener.stub`, rendered with
  the payload's SHA-256 as cache key and its exact byte length.

The payload is built deterministically (sorted entries, fixed mtimes and
owners, no gzip timestamp), so identical inputs produce an identical cache key
and end users re-use their extracted runtime across rebuilds.
"""

from dataclasses import dataclass
import gzip
import hashlib
import io
import logging
import os
import pathlib
import shutil
import stat
import tarfile
import tempfile
import zipfile

from jar_flattener.cds import ARCHIVE_NAME, MIN_APPCDS_VERSION, create_appcds_archive
from jar_flattener.config import JvmProfile
from jar_flattener.errors import BuildError, PackError
from jar_flattener.stub import STUB_ENCODING, render_stub
from jar_flattener.target import Target, current_target

logger: logging.Logger = logging.getLogger("jar_flattener.pack")

# 1980-01-01T00:00:00Z, the earliest timestamp zip can represent.
PAYLOAD_MTIME: int = 315532800
GZIP_LEVEL: int = 6


@dataclass(frozen=True, slots=True)
class PackOptions:
    """Inputs of :func:`create_binary`.

    :ivar runtime_dir: Minimized runtime directory.
    :ivar jar_path: Application jar.
    :ivar crac_path: Optional checkpoint directory.
    :ivar output: Output executable path.
    :ivar jvm_args: Extra JVM args.
    :ivar profile: JVM profile.
    :ivar appcds: Generate an AppCDS archive when possible.
    :ivar java_version: Bundled Java version.
    :ivar compact_banner: One-line launcher banner.
    :ivar target: Target platform (AppCDS is only dumped when it matches the host).
    """

    runtime_dir: pathlib.Path
    jar_path: pathlib.Path
    crac_path: pathlib.Path | None
    output: pathlib.Path
    jvm_args: tuple[str, ...]
    profile: JvmProfile
    appcds: bool
    java_version: int
    compact_banner: bool
    target: Target


@dataclass(frozen=True, slots=True)
class PackResult:
    """A written executable.

    :ivar path: Output path.
    :ivar cache_id: Payload content identifier.
    :ivar stub_size: Stub length in bytes.
    :ivar payload_size: Payload length in bytes.
    :ivar appcds: Whether an AppCDS archive was included.
    """

    path: pathlib.Path
    cache_id: str
    stub_size: int
    payload_size: int
    appcds: bool

    @property
    def total_size(self) -> int:
        return self.stub_size + self.payload_size


def content_id(payload: bytes) -> str:
    """Cache key of a payload: hex SHA-256 of its bytes."""

    return hashlib.sha256(payload).hexdigest()


def _normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.mtime = PAYLOAD_MTIME
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    if info.isdir() is True or info.mode & stat.S_IXUSR:
        info.mode = 0o755
    else:
        info.mode = 0o644
    return info


def build_payload(entries: list[tuple[pathlib.Path, str]]) -> bytes:
    """Build the gzip'd tar payload.

    :param entries: ``(source path, archive name)`` pairs; directories are added recursively.
    :returns: Payload bytes.
    """

    buf: io.BytesIO = io.BytesIO()
    with gzip.GzipFile(filename="", mode="wb", fileobj=buf, compresslevel=GZIP_LEVEL, mtime=0) as gz:
        with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tf:
            for src, arcname in sorted(entries, key=lambda e: e[1]):
                tf.add(str(src), arcname=arcname, recursive=True, filter=_normalize)
    return buf.getvalue()


def write_artifact(output: pathlib.Path, stub_bytes: bytes, payload: bytes) -> None:
    """Write ``stub_bytes ++ payload`` to ``output`` and make it executable.

    The file is written next to ``output`` and renamed into place.
    """

    output.parent.mkdir(parents=True, exist_ok=True)
    tmp: pathlib.Path = output.with_name(f".{output.name}.tmp")
    try:
        with open(tmp, "wb") as f:
            f.write(stub_bytes)
            f.write(payload)
        mode: int = tmp.stat().st_mode
        tmp.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        os.replace(tmp, output)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def _stage_jar(jar_path: pathlib.Path, staging: pathlib.Path) -> pathlib.Path:
    staged: pathlib.Path = staging / "app.jar"
    shutil.copyfile(jar_path, staged)
    os.utime(staged, (PAYLOAD_MTIME, PAYLOAD_MTIME))
    return staged


def _try_appcds(options: PackOptions, staged_jar: pathlib.Path, work_dir: pathlib.Path) -> pathlib.Path | None:
    if options.appcds is False:
        return None
    if options.java_version < MIN_APPCDS_VERSION:
        logger.info(f"jar-flattener: AppCDS skipped (needs Java {MIN_APPCDS_VERSION}+)")
        return None
    if options.target != current_target():
        logger.info(f"jar-flattener: AppCDS skipped (target {options.target} does not run on this host)")
        return None
    try:
        return create_appcds_archive(options.runtime_dir, staged_jar, work_dir)
    except (BuildError, OSError, zipfile.BadZipFile) as e:
        logger.warning(f"jar-flattener: AppCDS archive not created: {e}")
        return None


def create_binary(options: PackOptions) -> PackResult:
    """Assemble the payload, render the stub and write the executable.

    :param options: Pack inputs.
    :returns: Result describing the written file.
    :raises PackError: If the payload or output cannot be written.
    """

    if (options.runtime_dir / "bin").is_dir() is False:
        raise PackError(f"Runtime directory has no bin/: {options.runtime_dir}")
    if options.jar_path.is_file() is False:
        raise PackError(f"Application jar does not exist: {options.jar_path}")

    with tempfile.TemporaryDirectory(prefix="jar_flattener_pack_") as td:
        work_dir: pathlib.Path = pathlib.Path(td)
        staging: pathlib.Path = work_dir / "staging"
        staging.mkdir()

        try:
            staged_jar: pathlib.Path = _stage_jar(options.jar_path, staging)
            cds_archive: pathlib.Path | None = _try_appcds(options, staged_jar, work_dir)

            entries: list[tuple[pathlib.Path, str]] = [
                (options.runtime_dir, "runtime"),
                (staged_jar, "app.jar"),
            ]
            if options.crac_path is not None:
                entries.append((options.crac_path, "crac"))
            if cds_archive is not None:
                entries.append((cds_archive, ARCHIVE_NAME))

            payload: bytes = build_payload(entries)
        except (OSError, tarfile.TarError) as e:
            raise PackError(f"Could not assemble payload: {e}") from e

    cache_id: str = content_id(payload)
    stub_bytes: bytes = render_stub(
        cache_id,
        len(payload),
        options.jvm_args,
        profile_flags=options.profile.flags,
        appcds=cds_archive is not None,
        crac=options.crac_path is not None,
        java_version=options.java_version,
        compact_banner=options.compact_banner,
    ).encode(STUB_ENCODING)

    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(
            f"jar-flattener: cache_id={cache_id} stub={len(stub_bytes)}B payload={len(payload)}B"
        )

    try:
        write_artifact(options.output, stub_bytes, payload)
    except OSError as e:
        raise PackError(f"Could not write {options.output}: {e}") from e

    return PackResult(
        path=options.output,
        cache_id=cache_id,
        stub_size=len(stub_bytes),
        payload_size=len(payload),
        appcds=cds_archive is not None,
    )
