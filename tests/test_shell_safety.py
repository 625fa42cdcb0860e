"""Tests for shell escaping, identifier validation and path normalization."""

import shlex

import pytest

from volume_migrator.core.security.shell_safety import (
    RemoteCommand,
    escape,
    is_safe_token,
    sanitize_remote_path,
    validate_identifier,
)


class TestEscape:
    """Escaped strings parse back to the original token."""

    @pytest.mark.parametrize("value", ["volume-1", "/tmp/volume-migration-1", "a_b.c", "x"])
    def test_safe_strings_unchanged(self, value):
        assert escape(value) == value

    def test_single_quote_round_trip(self):
        escaped = escape("it's a test")
        assert escaped == "'it'\\''s a test'"
        assert shlex.split(escaped) == ["it's a test"]

    def test_empty_string_is_quoted(self):
        assert escape("") == "''"
        assert shlex.split(f"cmd {escape('')}") == ["cmd", ""]

    def test_dot_dot_is_never_safe(self):
        assert not is_safe_token("../etc")
        assert escape("../etc") == "'../etc'"

    @pytest.mark.parametrize(
        "value",
        [
            "$(rm -rf /)",
            "`id`",
            "a; b",
            "a && b",
            "name with spaces",
            "quote'and\"double",
            "new\nline",
            "glob*?[x]",
            "'''",
        ],
    )
    def test_metacharacters_round_trip(self, value):
        assert shlex.split(escape(value)) == [value]


class TestValidateIdentifier:
    """Resource identifiers follow a strict allow-list."""

    @pytest.mark.parametrize("name", ["a", "my-volume", "v1.0", "data_01", "A" * 255])
    def test_accepts(self, name):
        assert validate_identifier(name)

    @pytest.mark.parametrize(
        "name", ["", "-x", ".x", "a/b", "a;b", "a\\b", "a..b", "a b", "a$b", "a" * 256]
    )
    def test_rejects(self, name):
        assert not validate_identifier(name)


class TestSanitizeRemotePath:
    """Remote paths are normalized before use."""

    def test_traversal_removed(self):
        result = sanitize_remote_path("/tmp/../../etc/passwd")
        assert ".." not in result
        assert result.startswith("/")

    def test_leading_slash_forced(self):
        assert sanitize_remote_path("tmp/staging") == "/tmp/staging"

    def test_slash_runs_collapsed(self):
        assert sanitize_remote_path("//tmp///staging//") == "/tmp/staging/"

    def test_traversal_to_root_level_directory(self):
        assert sanitize_remote_path("/../etc") == "/etc"


class TestRemoteCommand:
    """Commands serialize only through escaping."""

    def test_render_escapes_each_token(self):
        cmd = RemoteCommand("mkdir", "-p", "/tmp/my dir")
        assert cmd.render() == "mkdir -p '/tmp/my dir'"
        assert shlex.split(str(cmd)) == ["mkdir", "-p", "/tmp/my dir"]

    def test_injection_stays_one_token(self):
        cmd = RemoteCommand("docker", "volume", "create", "x; rm -rf /")
        assert shlex.split(cmd.render()) == ["docker", "volume", "create", "x; rm -rf /"]

    def test_prefixed_and_extend_return_new_commands(self):
        base = RemoteCommand("docker", "ps")
        assert base.prefixed("sudo", "-n").tokens == ["sudo", "-n", "docker", "ps"]
        assert base.extend("-a").tokens == ["docker", "ps", "-a"]
        assert base.tokens == ["docker", "ps"]

    def test_equality(self):
        assert RemoteCommand.from_args(["rm", "-f", "/tmp/x"]) == RemoteCommand("rm", "-f", "/tmp/x")
        assert len({RemoteCommand("a"), RemoteCommand("a")}) == 1
