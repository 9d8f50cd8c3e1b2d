"""
Tests for the redis-fingerprint command line.

The store is replaced by the in-memory fake by patching the entry point the
command awaits.
"""

import functools
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from redis_fingerprint import __version__
from redis_fingerprint.cli import cli
from redis_fingerprint.fingerprint import digest, format_digest
from redis_fingerprint.services.pipeline import fingerprint_store


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("redis_fingerprint.cli.setup_logging"):
        yield


@pytest.fixture
def clean_env():
    """Keep RFP_* variables from the developer's environment out of the run."""
    with patch.dict(
        "os.environ",
        {
            "REDIS_URL": "",
            "RFP_OUTPUT": "",
            "RFP_BEST_EFFORT": "",
            "RFP_SCAN_MODE": "keys",
            "RFP_CONNECTION_STRATEGY": "pooled",
        },
    ):
        yield


def use_store(store):
    return patch(
        "redis_fingerprint.cli.fingerprint_store",
        functools.partial(fingerprint_store, client_factory=store.client),
    )


class TestCli:
    """Test cases for the cli command."""

    def test_writes_fingerprint_log(self, runner, clean_env, sample_store, log_path, read_log):
        with use_store(sample_store):
            result = runner.invoke(
                cli, ["--host", "redis://fake/", "--output", str(log_path)]
            )

        assert result.exit_code == 0, result.output
        assert f"Start... version: {__version__}" in result.output
        assert "Start getting all keys" in result.output
        assert "Start checking all values" in result.output
        assert f"k1 string: {format_digest(digest(['v1']))}\n" in read_log(log_path)
        assert len(read_log(log_path)) == 3

    def test_short_options_and_underscored_aliases(
        self, runner, clean_env, sample_store, log_path, read_log
    ):
        with use_store(sample_store):
            result = runner.invoke(
                cli,
                [
                    "-h", "redis://fake/",
                    "-o", str(log_path),
                    "--redis_connection", "4",
                    "--c_redis", "2",
                    "--c_file", "1",
                ],
            )

        assert result.exit_code == 0, result.output
        assert len(read_log(log_path)) == 3

    def test_output_truncated_before_run(self, runner, clean_env, sample_store, log_path, read_log):
        log_path.write_text("stale 0\n")
        with use_store(sample_store):
            runner.invoke(cli, ["-h", "redis://fake/", "-o", str(log_path)])
        assert "stale 0\n" not in read_log(log_path)

    def test_scan_mode(self, runner, clean_env, sample_store, log_path, read_log):
        with use_store(sample_store):
            result = runner.invoke(
                cli, ["-h", "redis://fake/", "-o", str(log_path), "--scan"]
            )
        assert result.exit_code == 0, result.output
        assert ("SCAN", "") in sample_store.commands
        assert len(read_log(log_path)) == 3

    def test_host_from_environment(self, runner, clean_env, sample_store, log_path):
        with use_store(sample_store), patch.dict(
            "os.environ", {"REDIS_URL": "redis://fake/"}
        ):
            result = runner.invoke(cli, ["-o", str(log_path)])
        assert result.exit_code == 0, result.output

    def test_unsupported_type_exits_nonzero(self, runner, clean_env, sample_store, log_path):
        sample_store.set_raw("events", "stream")
        with use_store(sample_store):
            result = runner.invoke(cli, ["-h", "redis://fake/", "-o", str(log_path)])

        assert result.exit_code == 1
        assert "Not supported type 'stream' for key: events" in result.output

    def test_best_effort_with_skipped_keys_exits_nonzero(
        self, runner, clean_env, sample_store, log_path, read_log
    ):
        sample_store.fail_keys.add("k3")
        with use_store(sample_store):
            result = runner.invoke(
                cli, ["-h", "redis://fake/", "-o", str(log_path), "--best-effort"]
            )

        assert result.exit_code == 1
        assert "incomplete" in result.output
        assert len(read_log(log_path)) == 2

    def test_missing_host_is_usage_error(self, runner, clean_env, log_path):
        result = runner.invoke(cli, ["-o", str(log_path)])
        assert result.exit_code == 2

    def test_invalid_concurrency_is_usage_error(self, runner, clean_env, log_path):
        result = runner.invoke(
            cli, ["-h", "redis://fake/", "-o", str(log_path), "--c-redis", "0"]
        )
        assert result.exit_code == 2
        assert "Redis concurrency must be at least 1" in result.output

    def test_bad_url_scheme_is_usage_error(self, runner, clean_env, log_path):
        result = runner.invoke(cli, ["-h", "http://fake/", "-o", str(log_path)])
        assert result.exit_code == 2
        assert "Unsupported Redis URL scheme" in result.output

    def test_unwritable_output_exits_nonzero(self, runner, clean_env, sample_store, tmp_path):
        with use_store(sample_store):
            result = runner.invoke(
                cli, ["-h", "redis://fake/", "-o", str(tmp_path / "no" / "out.log")]
            )
        assert result.exit_code == 1
        assert "LOG_WRITE_FAILED" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
