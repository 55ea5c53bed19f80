"""Build-machine JDK cache.

JDKs are Eclipse Temurin builds from the Adoptium API, cached per
``(version, target)`` under the cache root as ``jdk-<version>-<target>/``, which
holds the JDK home directly (``bin/``, ``jmods/``, ``lib/`` ...).

Population is crash and race safe: the JDK is downloaded, verified and
extracted into a private temporary directory next to the entry, then renamed
into place. A second process racing on the same key either sees the finished
entry or loses the rename and throws its copy away.
"""

from collections.abc import Callable
import hashlib
import logging
import os
import pathlib
import shutil
import tarfile
import tempfile
from typing import Any

import requests

from jar_flattener.cache import TEMP_PREFIX, CacheEntry, default_cache_root, list_entries
from jar_flattener.errors import AcquisitionError
from jar_flattener.target import Target, current_target

logger: logging.Logger = logging.getLogger("jar_flattener.jdk")

ADOPTIUM_API: str = "https://api.adoptium.net/v3"
HTTP_TIMEOUT: tuple[float, float] = (15.0, 60.0)
_CHUNK_SIZE: int = 1024 * 1024

# (version, target, dest) -> None; must leave a JDK home at ``dest``.
Fetcher = Callable[[int, Target, pathlib.Path], None]


class JdkCache:
    """JDK cache keyed by ``(version, target)``."""

    def __init__(
        self,
        root: pathlib.Path | None = None,
        *,
        fetcher: Fetcher | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Create a cache view.

        :param root: Cache root (defaults to :func:`~jar_flattener.cache.default_cache_root`).
        :param fetcher: Override for downloading a JDK (used by tests and mirrors).
        :param session: HTTP session for the default fetcher.
        """

        self.root: pathlib.Path = root if root is not None else default_cache_root()
        self._session: requests.Session | None = session
        self._fetcher: Fetcher = fetcher if fetcher is not None else self._download

    def entry_path(self, version: int, target: Target) -> pathlib.Path:
        return self.root / f"jdk-{version}-{target.name}"

    @staticmethod
    def is_populated(path: pathlib.Path) -> bool:
        return (path / "bin").is_dir()

    def ensure(self, version: int, target: Target) -> pathlib.Path:
        """Return a cached JDK home, downloading it on a cache miss.

        :param version: Java feature version.
        :param target: Target platform.
        :returns: JDK home directory.
        :raises AcquisitionError: If the JDK cannot be fetched or materialized.
        """

        final: pathlib.Path = self.entry_path(version, target)
        if self.is_populated(final) is True:
            logger.info(f"jar-flattener: JDK cache hit ({final.name})")
            return final

        logger.info(f"jar-flattener: JDK cache miss; fetching JDK {version} for {target}")
        self.root.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix=f"{TEMP_PREFIX}{final.name}-", dir=self.root) as td:
            staged: pathlib.Path = pathlib.Path(td) / "jdk"
            try:
                self._fetcher(version, target, staged)
            except AcquisitionError:
                raise
            except (requests.RequestException, OSError, tarfile.TarError) as e:
                raise AcquisitionError(f"Could not fetch JDK {version} for {target}: {e}") from e

            if self.is_populated(staged) is False:
                raise AcquisitionError(f"Downloaded JDK {version} for {target} has no bin/ directory")

            try:
                os.rename(staged, final)
            except OSError as e:
                if self.is_populated(final) is True:
                    logger.info(f"jar-flattener: {final.name} was populated concurrently; using it")
                    return final
                raise AcquisitionError(
                    f"Could not install JDK {version} for {target} into {final}: {e}. "
                    "Run 'jar-flattener clean' if the cache is damaged."
                ) from e

        logger.info(f"jar-flattener: cached {final.name}")
        return final

    def host_jdk(self, version: int) -> pathlib.Path:
        """Return a JDK that runs on this machine (for jdeps/jlink/java)."""

        return self.ensure(version, current_target())

    def entries(self) -> list[CacheEntry]:
        """Entries under this cache's root (JDKs and extracted launcher payloads)."""

        return list_entries(self.root)

    def _download(self, version: int, target: Target, dest: pathlib.Path) -> None:
        session: requests.Session = self._session if self._session is not None else requests.Session()
        download_jdk(version=version, target=target, dest=dest, session=session)


def _find_asset(*, version: int, target: Target, session: requests.Session) -> dict[str, Any]:
    """Look up the latest GA Temurin JDK package for ``(version, target)``.

    :returns: The ``binary.package`` object (``link``, ``checksum``, ``name``, ``size``).
    :raises AcquisitionError: If no build matches.
    """

    url: str = f"{ADOPTIUM_API}/assets/latest/{version}/hotspot"
    params: dict[str, str] = {
        "architecture": target.adoptium_arch,
        "image_type": "jdk",
        "os": target.adoptium_os,
        "vendor": "eclipse",
    }
    resp = session.get(url, params=params, timeout=HTTP_TIMEOUT)
    if resp.status_code == 404:
        raise AcquisitionError(f"No JDK {version} build is published for {target}")
    resp.raise_for_status()

    assets: list[dict[str, Any]] = resp.json() or []
    for asset in assets:
        package: dict[str, Any] | None = (asset.get("binary") or {}).get("package")
        if package is not None and package.get("link") is not None:
            return package
    raise AcquisitionError(f"No JDK {version} build is published for {target}")


def _download_verified(
    *,
    url: str,
    checksum: str | None,
    out_path: pathlib.Path,
    session: requests.Session,
) -> int:
    """Stream ``url`` to ``out_path`` and check its SHA-256.

    :returns: Bytes written.
    :raises AcquisitionError: On checksum mismatch.
    """

    h = hashlib.sha256()
    written: int = 0
    with session.get(url, stream=True, timeout=HTTP_TIMEOUT) as resp:
        resp.raise_for_status()
        with open(out_path, "wb") as f:
            for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                if len(chunk) == 0:
                    continue
                f.write(chunk)
                h.update(chunk)
                written += len(chunk)

    if checksum is not None and h.hexdigest() != checksum.lower():
        raise AcquisitionError(f"Checksum mismatch for {url}: expected {checksum}, got {h.hexdigest()}")
    return written


def _find_jdk_home(root: pathlib.Path) -> pathlib.Path:
    """Locate the JDK home inside an extracted archive.

    Handles ``jdk-21.0.2+13/bin`` and macOS ``jdk-21.0.2+13/Contents/Home/bin``.
    """

    candidates: list[pathlib.Path] = [root, *sorted(p for p in root.iterdir() if p.is_dir())]
    for base in candidates:
        for home in (base, base / "Contents" / "Home"):
            if (home / "bin").is_dir() is True:
                return home
    raise AcquisitionError(f"Could not find a JDK home (bin/) in {root}")


def extract_jdk_archive(archive: pathlib.Path, dest: pathlib.Path) -> None:
    """Extract a JDK ``.tar.gz`` and move its home to ``dest``.

    :param archive: Downloaded archive.
    :param dest: Destination; must not exist yet.
    """

    unpack_dir: pathlib.Path = archive.parent / "unpack"
    unpack_dir.mkdir(parents=True, exist_ok=True)
    with tarfile.open(archive, "r:*") as tf:
        tf.extractall(unpack_dir, filter="data")

    home: pathlib.Path = _find_jdk_home(unpack_dir)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(home), str(dest))


def download_jdk(*, version: int, target: Target, dest: pathlib.Path, session: requests.Session) -> None:
    """Download a Temurin JDK and leave its home at ``dest``.

    :param version: Java feature version.
    :param target: Target platform.
    :param dest: Destination JDK home (inside a temporary directory owned by the caller).
    :param session: HTTP session.
    :raises AcquisitionError: If no build exists or verification fails.
    """

    package: dict[str, Any] = _find_asset(version=version, target=target, session=session)
    name: str = package.get("name") or f"jdk-{version}-{target.name}.tar.gz"
    link: str = package["link"]
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"jar-flattener: downloading {link}")

    work: pathlib.Path = dest.parent
    work.mkdir(parents=True, exist_ok=True)
    archive: pathlib.Path = work / name
    written: int = _download_verified(
        url=link,
        checksum=package.get("checksum"),
        out_path=archive,
        session=session,
    )
    logger.info(f"jar-flattener: downloaded {name} ({written / (1024 * 1024):.1f} MiB)")

    extract_jdk_archive(archive, dest)
    archive.unlink()
