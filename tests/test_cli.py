"""
tests/test_cli.py -- Tests for the administrative command line in main.py.

getpass is monkeypatched; every command runs against --data-dir under tmp_path.
"""

from __future__ import annotations

import getpass

import pytest

import main as cli
from auth.credentials import verify_password
from auth.sessions import SESSIONS_DOCUMENT
from auth.store import UserStore
from storage.backends import FileBackend
from storage.documents import DocumentStore


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


def _answers(monkeypatch, *values: str) -> None:
    it = iter(values)
    monkeypatch.setattr(getpass, "getpass", lambda prompt="": next(it))


def _users(data_dir) -> UserStore:
    return UserStore(DocumentStore(FileBackend(data_dir)))


def test_create_admin(data_dir, monkeypatch, capsys) -> None:
    _answers(monkeypatch, "s3cret!", "s3cret!")
    rc = cli.main(["--data-dir", str(data_dir), "create-user", "--email", "Boss@Example.com", "--role", "admin"])
    assert rc == 0
    assert "Created admin boss@example.com" in capsys.readouterr().out

    user = _users(data_dir).get_by_email("boss@example.com")
    assert user.role == "admin"
    assert user.name == "Gebruiker"
    assert verify_password("s3cret!", user.password_hash)


def test_mismatched_passwords(data_dir, monkeypatch, capsys) -> None:
    _answers(monkeypatch, "one", "two")
    rc = cli.main(["--data-dir", str(data_dir), "create-user", "--email", "a@example.com"])
    assert rc == 1
    assert "do not match" in capsys.readouterr().out
    assert not _users(data_dir).has_users()


def test_duplicate_email(data_dir, monkeypatch, capsys) -> None:
    argv = ["--data-dir", str(data_dir), "create-user", "--email", "a@example.com", "--name", "Ann"]
    _answers(monkeypatch, "pw", "pw", "pw", "pw")
    assert cli.main(argv) == 0
    assert cli.main(argv) == 1
    assert "already registered" in capsys.readouterr().out


def test_unknown_role_rejected_by_argparse(data_dir) -> None:
    with pytest.raises(SystemExit):
        cli.main(["--data-dir", str(data_dir), "create-user", "--email", "a@example.com", "--role", "root"])


def test_purge_sessions(data_dir, capsys) -> None:
    documents = DocumentStore(FileBackend(data_dir))
    documents.write(
        SESSIONS_DOCUMENT,
        {
            "old": {"userId": "u1", "createdAt": 0, "expiresAt": 1},
            "live": {"userId": "u1", "createdAt": 0, "expiresAt": 32503680000000},
        },
    )
    documents.close()

    assert cli.main(["--data-dir", str(data_dir), "purge-sessions"]) == 0
    assert "Removed 1 expired session(s)." in capsys.readouterr().out
    assert set(DocumentStore(FileBackend(data_dir)).read(SESSIONS_DOCUMENT, {})) == {"live"}


def test_no_command_prints_help(capsys) -> None:
    assert cli.main([]) == 2
    assert "create-user" in capsys.readouterr().out
