from jar_flattener.stub import PAYLOAD_MARKER, render_banner, render_stub

CACHE_ID = "ab" * 32


def test_stub_header_and_marker():
    script = render_stub(CACHE_ID, 1234, [])
    lines = script.splitlines()

    assert lines[0] == "#!/bin/sh"
    assert f'CACHE_ID="{CACHE_ID}"' in lines
    assert "PAYLOAD_SIZE=1234" in lines
    assert lines[-1] == PAYLOAD_MARKER
    assert script.endswith(PAYLOAD_MARKER + "\n")


def test_jvm_args_are_joined_before_jar():
    script = render_stub(CACHE_ID, 1, ["-Xmx512m", "-Dfoo=bar"])

    assert '"$CACHE_DIR/runtime/bin/java" -Xmx512m -Dfoo=bar -jar "$CACHE_DIR/app.jar" "$@"' in script


def test_launch_line_without_flags():
    script = render_stub(CACHE_ID, 1, [])

    assert 'exec "$CACHE_DIR/runtime/bin/java" -jar "$CACHE_DIR/app.jar" "$@"' in script


def test_profile_and_cds_flags_precede_user_args():
    script = render_stub(
        CACHE_ID,
        1,
        ["-Xss1m"],
        profile_flags=("-XX:+UseSerialGC", "-XX:TieredStopAtLevel=1"),
        appcds=True,
    )

    expected = (
        'exec "$CACHE_DIR/runtime/bin/java" -XX:+UseSerialGC -XX:TieredStopAtLevel=1 '
        '-XX:SharedArchiveFile="$CACHE_DIR/app.jsa" -Xshare:auto -Xss1m -jar "$CACHE_DIR/app.jar" "$@"'
    )
    assert expected in script


def test_crac_restore_only_when_requested():
    assert "CRaCRestoreFrom" not in render_stub(CACHE_ID, 1, [])

    script = render_stub(CACHE_ID, 1, [], crac=True)
    restore_at = script.index('-XX:CRaCRestoreFrom="$CACHE_DIR/crac"')
    launch_at = script.index('-jar "$CACHE_DIR/app.jar"')
    assert restore_at < launch_at
    assert 'if "$CACHE_DIR/runtime/bin/java" -XX:CRaCRestoreFrom="$CACHE_DIR/crac" "$@"; then' in script
    assert 'exec "$CACHE_DIR/runtime/bin/java" -XX:CRaCRestoreFrom' not in script


def test_extraction_uses_private_staging_dir():
    script = render_stub(CACHE_ID, 99, [])

    assert 'mktemp -d "$CACHE_ROOT/.tmp-$CACHE_ID.XXXXXX"' in script
    assert 'tail -c "$PAYLOAD_SIZE" "$0" | tar xzf - -C "$STAGE_DIR"' in script
    assert 'mv "$STAGE_DIR" "$CACHE_DIR"' in script
    assert 'CACHE_ROOT="${JAR_FLATTENER_HOME:-$HOME/.jar-flattener}/cache"' in script


def test_banner_variants():
    assert render_banner(java_version=21, compact=True) == "jar-flattener | Java 21"

    full = render_banner(java_version=17, compact=False).splitlines()
    assert len(full) == 3
    assert full[0] == full[2]
    assert "jar-flattener | Java 17" in full[1]


def test_banner_is_embedded_in_stub():
    script = render_stub(CACHE_ID, 1, [], java_version=21, compact_banner=True)

    assert "cat >&2 <<'BANNER'\njar-flattener | Java 21\nBANNER\n" in script
    assert 'if [ -z "${JAR_FLATTENER_QUIET:-}" ]; then' in script
