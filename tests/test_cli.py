"""
Tests for the passvault command line.

Tests cover:
- init / add / get / list flows
- Prompting for secrets
- Error reporting and exit codes
"""
import pytest

from passvault.__main__ import build_parser, main


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    for name in ("VAULT_PATH", "VAULT_LOCK_TIMEOUT", "VAULT_FSYNC"):
        monkeypatch.delenv(name, raising=False)
    return str(tmp_path / "passwords.enc")


@pytest.fixture
def answers(monkeypatch):
    """Queue of answers returned by getpass, in order."""
    queue = []

    def _getpass(prompt=""):
        return queue.pop(0)

    monkeypatch.setattr("passvault.__main__.getpass", _getpass)
    return queue


@pytest.fixture
def initialized(store_path, answers):
    answers.extend(["hunter2", "hunter2"])
    assert main(["--store", store_path, "init"]) == 0
    return store_path


class TestParser:
    """Tests for the argument parser."""

    def test_command_required(self):
        """Test that a subcommand is mandatory."""
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args([])
        assert exc.value.code == 2

    def test_add_password_optional(self):
        """Test that the password argument can be omitted."""
        args = build_parser().parse_args(["add", "github", "alice"])
        assert args.password is None


class TestCommands:
    """Tests for the command flows."""

    def test_init(self, capsys, initialized):
        """Test that init reports the new store."""
        assert "initialized" in capsys.readouterr().out

    def test_init_mismatch(self, store_path, answers, capsys):
        """Test that mismatching secrets abort init."""
        answers.extend(["hunter2", "hunter3"])
        assert main(["--store", store_path, "init"]) == 1
        assert "do not match" in capsys.readouterr().err

    def test_init_empty_secret(self, store_path, answers, capsys):
        """Test that an empty master secret is refused."""
        answers.append("")
        assert main(["--store", store_path, "init"]) == 1
        assert "empty" in capsys.readouterr().err

    def test_init_twice(self, initialized, answers, capsys):
        """Test that init on an existing store fails."""
        answers.extend(["hunter2", "hunter2"])
        assert main(["--store", initialized, "init"]) == 1
        assert "occupied" in capsys.readouterr().err

    def test_add_and_get(self, initialized, answers, capsys):
        """Test adding a record and reading it back."""
        answers.append("hunter2")
        assert main(["--store", initialized, "add", "github", "alice", "p@ss"]) == 0
        answers.append("hunter2")
        assert main(["--store", initialized, "get", "github"]) == 0
        out = capsys.readouterr().out
        assert "Username: alice" in out
        assert "Password: p@ss" in out

    def test_add_prompts_for_password(self, initialized, answers, capsys):
        """Test that a missing password argument is prompted for."""
        answers.extend(["hunter2", "s3cret"])
        assert main(["--store", initialized, "add", "mail", "bob"]) == 0
        answers.append("hunter2")
        assert main(["--store", initialized, "get", "mail"]) == 0
        assert "Password: s3cret" in capsys.readouterr().out

    def test_list_hides_secrets(self, initialized, answers, capsys):
        """Test that list prints names and usernames only."""
        answers.append("hunter2")
        main(["--store", initialized, "add", "github", "alice", "p@ss"])
        answers.append("hunter2")
        assert main(["--store", initialized, "list"]) == 0
        out = capsys.readouterr().out
        assert "github\talice" in out
        assert "p@ss" not in out

    def test_list_empty(self, initialized, answers, capsys):
        """Test list on an empty store."""
        answers.append("hunter2")
        assert main(["--store", initialized, "list"]) == 0
        assert "No entries" in capsys.readouterr().out

    def test_wrong_secret(self, initialized, answers, capsys):
        """Test that a wrong master secret exits with 1."""
        answers.append("wrongpass")
        assert main(["--store", initialized, "list"]) == 1
        assert "wrong master secret or damaged file" in capsys.readouterr().err

    def test_get_missing(self, initialized, answers, capsys):
        """Test get of an unknown name."""
        answers.append("hunter2")
        assert main(["--store", initialized, "get", "nope"]) == 1
        assert "No record named 'nope'" in capsys.readouterr().err

    def test_missing_store(self, store_path, answers, capsys):
        """Test commands against a store that does not exist."""
        answers.append("hunter2")
        assert main(["--store", store_path, "list"]) == 1
        assert "No vault" in capsys.readouterr().err

    def test_duplicate_add(self, initialized, answers, capsys):
        """Test that adding an existing name fails."""
        answers.append("hunter2")
        main(["--store", initialized, "add", "github", "alice", "p@ss"])
        answers.append("hunter2")
        assert main(["--store", initialized, "add", "github", "bob", "x"]) == 1
        assert "already exists" in capsys.readouterr().err

    def test_invalid_record_does_not_echo_password(self, initialized, answers, capsys):
        """Test that validation errors never print the password."""
        answers.append("hunter2")
        assert main(["--store", initialized, "add", "", "alice", "t0ps3cret"]) == 1
        err = capsys.readouterr().err
        assert "name" in err
        assert "t0ps3cret" not in err

    def test_unencodable_password(self, initialized, answers, capsys):
        """Test that a password with undecodable bytes is an error, not a crash."""
        answers.append("hunter2")
        assert main(["--store", initialized, "add", "svc", "alice", "p\udcffw"]) == 1
        assert "secret" in capsys.readouterr().err
        answers.append("hunter2")
        assert main(["--store", initialized, "list"]) == 0
        assert "No entries" in capsys.readouterr().out
