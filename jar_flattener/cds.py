"""AppCDS archive generation.

A static shared archive is dumped at build time from the list of classes in the
application jar, using the minimized runtime itself. The launcher points the JVM
at it with ``-XX:SharedArchiveFile``; when the archive does not validate on the
end-user machine the JVM falls back to normal class loading.

The JVM validates the size and mtime of the classpath jar, so the caller pins
the jar's mtime before dumping and stores it in the payload with that mtime.
"""

import logging
import pathlib
import zipfile

from jar_flattener.errors import BuildError
from jar_flattener.process import CDS_TIMEOUT, run_tool

logger: logging.Logger = logging.getLogger("jar_flattener.cds")

ARCHIVE_NAME: str = "app.jsa"
MIN_APPCDS_VERSION: int = 11


def class_list(jar_path: pathlib.Path) -> list[str]:
    """List the jar's classes in internal form (``com/example/Main``)."""

    names: list[str] = []
    with zipfile.ZipFile(jar_path, "r") as zf:
        for name in zf.namelist():
            if name.endswith(".class") is False:
                continue
            if name.startswith("META-INF/") is True:
                continue
            if name.endswith("module-info.class") is True or name.endswith("package-info.class") is True:
                continue
            names.append(name[: -len(".class")])
    return sorted(names)


def create_appcds_archive(
    runtime_dir: pathlib.Path,
    jar_path: pathlib.Path,
    work_dir: pathlib.Path,
) -> pathlib.Path:
    """Dump a static AppCDS archive for ``jar_path``.

    :param runtime_dir: Minimized runtime (must run on this host).
    :param jar_path: Application jar, at the path and mtime it will have in the payload.
    :param work_dir: Scratch directory.
    :returns: Path of the archive.
    :raises BuildError: If the dump fails.
    """

    classes: list[str] = class_list(jar_path)
    list_path: pathlib.Path = work_dir / "classes.lst"
    list_path.write_text("\n".join(classes) + "\n", encoding="utf-8")

    archive: pathlib.Path = work_dir / ARCHIVE_NAME
    run_tool(
        [
            str(runtime_dir / "bin" / "java"),
            "-Xshare:dump",
            f"-XX:SharedClassListFile={list_path}",
            f"-XX:SharedArchiveFile={archive}",
            "-cp",
            str(jar_path),
        ],
        timeout=CDS_TIMEOUT,
        error_cls=BuildError,
    )
    if archive.is_file() is False:
        raise BuildError(f"java -Xshare:dump did not write {archive}")

    logger.info(f"jar-flattener: AppCDS archive with {len(classes)} classes ({archive.stat().st_size} bytes)")
    return archive
