import json
import logging
import sys
from types import SimpleNamespace

import pytest

from netflix_session import cli
from netflix_session.exceptions import ErrorKind, OperationError
from netflix_session.models import Profile
from fakes import paged

PROFILES = {
    "profiles": [
        {"guid": "G1", "profileName": "Ann", "isActive": True},
        {"guid": "G2", "profileName": "Kids", "isActive": False, "isKids": True},
    ],
    "active": {"guid": "G1", "profileName": "Ann", "isActive": True},
}


@pytest.fixture
def no_env_credentials(monkeypatch):
    monkeypatch.setattr(cli, "NETFLIX_COOKIE", None)
    monkeypatch.setattr(cli, "NETFLIX_EMAIL", None)
    monkeypatch.setattr(cli, "NETFLIX_PASSWORD", None)


def test_cli_dispatch_profiles(monkeypatch):
    called = {}

    def fake_profiles(args):
        called["command"] = args.command
        called["cookie"] = args.cookie

    monkeypatch.setattr(cli, "cmd_profiles", fake_profiles)
    monkeypatch.setattr(sys, "argv", ["prog", "profiles", "--cookie", "NetflixId=1"])

    cli.main()
    assert called == {"command": "profiles", "cookie": "NetflixId=1"}


def test_cli_parses_hide_history_args(monkeypatch):
    captured = {}
    monkeypatch.setattr(cli, "cmd_hide_history", lambda args: captured.update(vars(args)))
    monkeypatch.setattr(sys, "argv", ["prog", "hide-history", "1", "2", "--series", "--profile", "Kids"])

    cli.main()

    assert captured["title_ids"] == [1, 2]
    assert captured["series"] is True
    assert captured["all"] is False
    assert captured["profile"] == "Kids"


def test_cli_parses_export_args(monkeypatch):
    captured = {}
    monkeypatch.setattr(cli, "cmd_export", lambda args: captured.update(vars(args)))
    monkeypatch.setattr(sys, "argv", ["prog", "export", "out.json", "--no-history"])

    cli.main()

    assert captured["file"] == "out.json"
    assert captured["include_history"] is False


def test_cli_errors_exit_with_status_one(monkeypatch, caplog):
    def failing(args):
        raise OperationError("get_profiles failed: the service could not be reached", "get_profiles",
                             ErrorKind.TRANSPORT)

    monkeypatch.setattr(cli, "cmd_profiles", failing)
    monkeypatch.setattr(sys, "argv", ["prog", "profiles"])

    with pytest.raises(SystemExit) as exc_info:
        cli.main()
    assert exc_info.value.code == 1
    assert "could not be reached" in caplog.text


def test_credentials_prefer_cookie(no_env_credentials):
    args = SimpleNamespace(cookie="NetflixId=1", email="a@example.com", password="pw")

    assert cli._credentials(args).uses_cookie


def test_credentials_fall_back_to_env_and_prompt(no_env_credentials, monkeypatch):
    monkeypatch.setattr(cli, "NETFLIX_EMAIL", "env@example.com")
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt: "typed")

    creds = cli._credentials(SimpleNamespace(cookie=None, email=None, password=None))

    assert creds.email == "env@example.com"
    assert creds.password == "typed"


def test_credentials_require_email(no_env_credentials):
    with pytest.raises(SystemExit):
        cli._credentials(SimpleNamespace(cookie=None, email=None, password=None))


def test_find_profile_by_name_or_guid():
    profiles = [Profile.from_json(p) for p in PROFILES["profiles"]]

    assert cli._find_profile(profiles, "kids").guid == "G2"
    assert cli._find_profile(profiles, "G1").display_name == "Ann"
    with pytest.raises(SystemExit, match="Ann, Kids"):
        cli._find_profile(profiles, "Bob")


def test_cmd_avatar_url(capsys):
    cli.cmd_avatar_url(SimpleNamespace(avatar_name="icon26", size=100))

    assert capsys.readouterr().out.strip().endswith("/100x100/PICON_26.png")


def test_cmd_export_writes_json(logged_in, fake, monkeypatch, tmp_path):
    fake.api["/profiles"] = (200, PROFILES)
    fake.api["/profiles/switch"] = (200, {"status": "success"})
    fake.api["/ratinghistory"] = paged(
        "ratingItems", "totalRatings", [{"movieID": 1, "title": "A", "yourRating": 4}], size=20
    )
    fake.api["/viewingactivity"] = paged("viewedItems", "vhSize", [{"movieID": 2, "title": "B"}], size=20)
    monkeypatch.setattr(cli, "_open_session", lambda args: logged_in)
    out = tmp_path / "export.json"

    cli.cmd_export(SimpleNamespace(file=str(out), profile="Kids", include_history=True))

    data = json.loads(out.read_text())
    assert data["profile"] == "Kids"
    assert data["ratings"] == [{"movieID": 1, "title": "A", "yourRating": 4}]
    assert data["viewing_history"] == [{"movieID": 2, "title": "B"}]
    [switch] = fake.api_requests("/profiles/switch")
    assert switch.url.params["switchProfileGuid"] == "G2"


def test_cmd_import_counts_failures(logged_in, fake, monkeypatch, tmp_path, caplog):
    caplog.set_level(logging.INFO)
    fake.api["/setVideoRating"] = (200, {"newRating": 3})
    fake.api["/setThumbRating"] = (200, {"newRating": 2})
    monkeypatch.setattr(cli, "_open_session", lambda args: logged_in)
    source = tmp_path / "export.json"
    source.write_text(json.dumps({"ratings": [
        {"movieID": 1, "title": "Star", "yourRating": 3, "ratingType": "star"},
        {"movieID": 2, "title": "Thumb", "intRating": 2, "ratingType": "thumb"},
        {"movieID": 3, "title": "Mismatch", "yourRating": 5, "ratingType": "star"},
    ]}))

    cli.cmd_import(SimpleNamespace(file=str(source), profile=None))

    assert "Imported 2 ratings" in caplog.text
    assert "(1 failed)" in caplog.text
    assert "Could not rate 'Mismatch'" in caplog.text


def test_cmd_hide_history_requires_targets():
    with pytest.raises(SystemExit):
        cli.cmd_hide_history(SimpleNamespace(all=False, title_ids=[], series=False, profile=None))


def test_cmd_hide_history_all(logged_in, fake, monkeypatch):
    fake.api["/viewingactivitycontrol"] = (200, {})
    monkeypatch.setattr(cli, "_open_session", lambda args: logged_in)

    cli.cmd_hide_history(SimpleNamespace(all=True, title_ids=[], series=False, profile=None))

    [request] = fake.api_requests("/viewingactivitycontrol")
    assert fake.body(request)["hideAll"] is True
