"""Tests for the command-line interface."""

import pytest

from svbisect import cli
from svbisect.errors import ConfigError
from svbisect.persistence import DatabaseError
from svbisect.svn import WorkingCopyInfo


@pytest.fixture
def patched_cli(monkeypatch, controller):
    """Route every CLI command to the fake-backed controller."""
    monkeypatch.setattr(cli, "create_controller", lambda config_path=None: controller)
    return controller


def test_load_config_default_is_optional(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert cli.load_config() == {}


def test_load_config_explicit_missing(tmp_path):
    with pytest.raises(ConfigError):
        cli.load_config(str(tmp_path / "missing.yaml"))


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "svbisect.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ConfigError):
        cli.load_config(str(path))


def test_create_bisect_config(tmp_path):
    path = tmp_path / "svbisect.yaml"
    path.write_text(
        "svn:\n"
        "  command: /usr/local/bin/svn\n"
        "  update_depth: files\n"
        "state:\n"
        "  data_dir: /var/tmp/bisect\n"
        "command_name: svu bisect\n"
    )

    config = cli.create_bisect_config(cli.load_config(str(path)))

    assert config.svn.command == "/usr/local/bin/svn"
    assert config.svn.update_depth == "files"
    assert config.state.data_dir == "/var/tmp/bisect"
    assert config.state.database == "bisect.db"
    assert str(config.state.data_path("/wc")) == "/var/tmp/bisect"
    assert config.command_name == "svu bisect"


def test_create_bisect_config_defaults():
    config = cli.create_bisect_config({})

    assert config.svn.command is None
    assert config.svn.update_depth == "infinity"
    assert str(config.state.data_path("/wc")) == "/wc/.svbisect"
    assert config.command_name == "svbisect"


def test_parser_aliases():
    parser = cli.create_parser()

    assert cli.COMMAND_HANDLERS[parser.parse_args(["mark-good", "10"]).command] is cli.cmd_good
    assert cli.COMMAND_HANDLERS[parser.parse_args(["mark-bad"]).command] is cli.cmd_bad
    assert parser.parse_args(["terms", "--term-bad"]).term == "bad"
    assert parser.parse_args(["start", "--good-term", "old"]).term_good == "old"


def test_parser_reset_options_are_exclusive():
    parser = cli.create_parser()

    assert parser.parse_args(["reset", "-n"]).no_update
    assert parser.parse_args(["reset", "HEAD"]).revision == "HEAD"
    with pytest.raises(SystemExit):
        parser.parse_args(["reset", "-n", "HEAD"])


def test_scan_global_args():
    assert cli._scan_global_args(["-v", "-c", "my.yaml", "old", "10"]) == (3, "my.yaml")
    assert cli._scan_global_args(["--config=x.yaml", "bad"]) == (1, "x.yaml")
    assert cli._scan_global_args(["-v"]) == (None, None)


def test_start_good_bad_via_main(patched_cli, dense_vcs):
    assert cli.main(["start", "--good", "0", "--bad", "100"]) == 0
    assert dense_vcs.current == 50

    assert cli.main(["bad"]) == 0
    assert cli.main(["mark-good"]) == 0
    assert dense_vcs.current == 30

    log = patched_cli.store.read_log()
    assert "svbisect start --good 0 --bad 100" in log
    assert log[-2:] == ["# good: [20] Commit 20", "svbisect good"]


def test_custom_term_is_command_alias(patched_cli, dense_vcs, capsys):
    assert cli.main(["start", "--term-good", "fast", "--term-bad", "slow", "--bad", "100"]) == 0
    assert cli.main(["fast", "0"]) == 0

    session = patched_cli.load()
    assert session.lower_bound == "0"
    assert dense_vcs.current == 50

    capsys.readouterr()
    assert cli.main(["terms", "--good"]) == 0
    assert capsys.readouterr().out == "fast\n"


def test_terms_output(patched_cli, capsys):
    cli.main(["start"])
    capsys.readouterr()

    assert cli.main(["terms"]) == 0
    out = capsys.readouterr().out
    assert "The term for the good state is good" in out
    assert "The term for the bad  state is bad" in out
    assert "status: waiting for both 'good' and 'bad' revisions" in out


def test_skip_and_unskip_via_main(patched_cli, capsys):
    cli.main(["start", "--good", "0", "--bad", "100"])

    assert cli.main(["skip"]) == 0
    assert patched_cli.load().skipped == {"50"}
    assert cli.main(["skip", "50"]) == 0
    assert "No new revisions to skip" in capsys.readouterr().out

    assert cli.main(["unskip", "60:50"]) == 0
    assert patched_cli.load().skipped == set()
    assert patched_cli.store.read_log()[-1] == "svbisect unskip 60:50"


def test_log_command(patched_cli, capsys):
    cli.main(["start", "--bad", "100"])
    capsys.readouterr()

    assert cli.main(["log"]) == 0
    out = capsys.readouterr().out
    assert "# bad: [100] Commit 100" in out
    assert "svbisect start --bad 100" in out


def test_errors_are_reported(patched_cli, capsys):
    assert cli.main(["good"]) == 1
    assert "Error: You must first start a bisect session" in capsys.readouterr().err

    cli.main(["start", "--good", "0", "--bad", "100"])
    assert cli.main(["good", "100"]) == 1
    assert cli.main(["bad", "not-a-rev"]) == 1
    assert "Malformed revision 'not-a-rev'" in capsys.readouterr().err


def test_reset_via_main(patched_cli, dense_vcs, capsys):
    assert cli.main(["reset"]) == 0
    assert "No bisect session in progress" in capsys.readouterr().out

    cli.main(["start", "--good", "0", "--bad", "100"])
    assert cli.main(["reset"]) == 0
    assert dense_vcs.current == 40
    assert patched_cli.store.load() is None


def test_run_via_main(patched_cli, dense_vcs):
    cli.main(["start", "--good", "0", "--bad", "100"])

    assert cli.main(["run", "true"]) == 0
    assert dense_vcs.current == 90
    assert patched_cli.store.read_log()[-1] == "svbisect good"


def test_run_requires_command(patched_cli, capsys):
    assert cli.main(["run"]) == 1
    assert "requires a command" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage:" in capsys.readouterr().out


def test_failed_update_keeps_command_in_log(patched_cli, dense_vcs, capsys):
    cli.main(["start", "--bad", "100"])
    dense_vcs.fail_update = True

    assert cli.main(["good", "0"]) == 1
    assert "E155004" in capsys.readouterr().err

    assert patched_cli.load().lower_bound == "0"
    assert patched_cli.store.read_log()[-2:] == ["# good: [0] Commit 0", "svbisect good 0"]


def test_create_controller_records_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        cli.SvnClient, "working_copy_info", lambda self: WorkingCopyInfo("7", str(tmp_path))
    )
    (tmp_path / "custom.yaml").write_text("command_name: svu bisect\n")

    controller = cli.create_controller("custom.yaml")
    controller.store.close()

    assert controller.config.config_file == str((tmp_path / "custom.yaml").resolve())

    default = cli.create_controller()
    default.store.close()
    assert default.config.config_file is None


def test_term_alias_survives_unreadable_database(patched_cli, monkeypatch):
    def unreadable():
        raise DatabaseError("file is not a database")

    monkeypatch.setattr(patched_cli.store, "load", unreadable)

    assert cli.resolve_term_alias(["fast", "0"]) == ["fast", "0"]
