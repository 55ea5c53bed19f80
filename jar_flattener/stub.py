"""Launcher stub rendering.

A generated executable is a POSIX ``sh`` script followed directly by a gzip'd
tar payload. On every run the script:

1. checks ``$CACHE_DIR/runtime`` under ``${JAR_FLATTENER_HOME:-$HOME/.jar-flattener}/cache/<CACHE_ID>``;
2. on a miss, extracts the last ``PAYLOAD_SIZE`` bytes of itself into a private
   staging directory and renames it to ``$CACHE_DIR`` (a concurrent first run
   that loses the rename discards its copy);
3. when the payload holds a checkpoint, tries to restore it with the forwarded
   arguments and falls through to a normal start if the restore fails;
4. ``exec``s the cached ``java`` with the baked-in flags, ``-jar app.jar`` and
   the forwarded arguments.

The stub is always encoded as UTF-8, and ``PAYLOAD_SIZE`` must equal the exact
byte length of what is appended after :data:`PAYLOAD_MARKER`.
"""

from jar_flattener import __version__

PAYLOAD_MARKER: str = "# --- PAYLOAD BELOW ---"
STUB_ENCODING: str = "utf-8"
HOME_ENV: str = "JAR_FLATTENER_HOME"
QUIET_ENV: str = "JAR_FLATTENER_QUIET"


def render_banner(*, java_version: int | None, compact: bool) -> str:
    """Banner text printed to stderr by the launcher.

    :param java_version: Bundled Java version, if known.
    :param compact: One line instead of a box.
    :returns: Banner text without a trailing newline.
    """

    title: str = "jar-flattener"
    if java_version is not None:
        title = f"{title} | Java {java_version}"
    if compact is True:
        return title

    rule: str = "+" + "-" * (len(title) + 4) + "+"
    return "\n".join([rule, f"|  {title}  |", rule])


def _flags_text(flags: list[str]) -> str:
    if len(flags) == 0:
        return ""
    return " " + " ".join(flags)


def render_stub(
    cache_id: str,
    payload_size: int,
    jvm_args: list[str] | tuple[str, ...],
    *,
    profile_flags: list[str] | tuple[str, ...] = (),
    appcds: bool = False,
    crac: bool = False,
    java_version: int | None = None,
    compact_banner: bool = False,
) -> str:
    """Render the launcher script.

    JVM args are inserted verbatim (space joined) right before ``-jar``, so
    they are subject to shell word splitting and expansion at launch time.

    :param cache_id: Content identifier of the payload (cache key).
    :param payload_size: Exact payload byte length.
    :param jvm_args: User JVM args.
    :param profile_flags: Flags from the JVM profile.
    :param appcds: Payload contains ``app.jsa``.
    :param crac: Payload contains a ``crac/`` checkpoint.
    :param java_version: Bundled Java version, shown in the banner.
    :param compact_banner: Use the one-line banner.
    :returns: Script text ending with the payload marker line.
    """

    launch_flags: list[str] = list(profile_flags)
    if appcds is True:
        launch_flags.extend(['-XX:SharedArchiveFile="$CACHE_DIR/app.jsa"', "-Xshare:auto"])
    launch_flags.extend(jvm_args)

    banner: str = render_banner(java_version=java_version, compact=compact_banner)

    restore: str = ""
    if crac is True:
        restore = (
            'if [ -d "$CACHE_DIR/crac" ]; then\n'
            '    if "$CACHE_DIR/runtime/bin/java" -XX:CRaCRestoreFrom="$CACHE_DIR/crac" "$@"; then\n'
            "        exit 0\n"
            "    fi\n"
            '    echo "jar-flattener: checkpoint restore failed; starting normally" >&2\n'
            "fi\n"
            "\n"
        )

    return f"""#!/bin/sh
# Generated by jar-flattener {__version__}. Binary payload follows the marker line.
set -e
CACHE_ID="{cache_id}"
CACHE_ROOT="${{{HOME_ENV}:-$HOME/.jar-flattener}}/cache"
CACHE_DIR="$CACHE_ROOT/$CACHE_ID"
PAYLOAD_SIZE={payload_size}

if [ -z "${{{QUIET_ENV}:-}}" ]; then
cat >&2 <<'BANNER'
{banner}
BANNER
fi

if [ ! -d "$CACHE_DIR/runtime" ]; then
    mkdir -p "$CACHE_ROOT"
    STAGE_DIR=$(mktemp -d "$CACHE_ROOT/.tmp-$CACHE_ID.XXXXXX")
    trap 'rm -rf "$STAGE_DIR"' EXIT
    trap 'rm -rf "$STAGE_DIR"; exit 130' INT TERM
    echo "Extracting runtime (first run)..." >&2
    tail -c "$PAYLOAD_SIZE" "$0" | tar xzf - -C "$STAGE_DIR"
    mv "$STAGE_DIR" "$CACHE_DIR" 2>/dev/null || true
    rm -rf "$CACHE_DIR/${{STAGE_DIR##*/}}" "$STAGE_DIR"
    trap - EXIT INT TERM
    if [ ! -d "$CACHE_DIR/runtime" ]; then
        echo "jar-flattener: could not extract into $CACHE_DIR; remove it and retry" >&2
        exit 1
    fi
fi

{restore}exec "$CACHE_DIR/runtime/bin/java"{_flags_text(launch_flags)} -jar "$CACHE_DIR/app.jar" "$@"
exit 1
{PAYLOAD_MARKER}
"""
