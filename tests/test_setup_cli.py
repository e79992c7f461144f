"""End-to-end tests for ``tools/setup_wizard.py`` with fakes for yarn and PostgreSQL."""

import pytest

from setup_utils.errors import ConfirmationDeclinedError, DatabaseUnreachableError, SetupAborted
from setup_utils.setup_wizard import SetupConfig
from tools import setup_wizard as cli


class RecordingRunner:
    def __init__(self):
        self.calls = []
        self.captured = []

    def __call__(self, *args, env=None, capture_output=False):
        self.calls.append((args, env))
        self.captured.append(capture_output)


@pytest.fixture
def runner():
    return RecordingRunner()


def _accept_defaults(message, default):
    return default


def _engine_factory(engine, urls):
    def factory(url):
        urls.append(url)
        return engine
    return factory


@pytest.mark.functional
def test_full_setup(env_path, fake_engine, runner, record_sleep, capsys):
    urls = []
    config = SetupConfig(env_path=env_path)

    final = cli.run_setup(
        config,
        environ={},
        prompt=_accept_defaults,
        prompt_yes_no=lambda message, default: True,
        run=runner,
        engine_factory=_engine_factory(fake_engine, urls),
        sleep=record_sleep,
        node_major_version=18,
    )

    assert [args for args, _ in runner.calls] == [
        ("server", "build"),
        ("db", "reset"),
        ("db", "reset", "--shadow"),
    ]
    assert runner.captured == [True, False, False]
    assert runner.calls[1][1]["DATABASE_NAME"] == "graphile_starter"
    assert urls == ["postgres:///template1"]
    assert fake_engine.statements[0] == "DROP DATABASE IF EXISTS graphile_starter"
    assert fake_engine.disposed
    assert final.get("GRAPHILE_TURBO") == "1"
    assert final.get("DATABASE_OWNER_PASSWORD") == fake_engine.executed[6][1]["password"]

    out = capsys.readouterr().out
    assert "Setup success" in out
    assert "  yarn start" in out


@pytest.mark.functional
def test_project_name_hint(env_path, fake_engine, runner, record_sleep, capsys):
    config = SetupConfig(env_path=env_path, project_name="my_project", assume_yes=True)

    cli.run_setup(
        config,
        environ={},
        prompt=_accept_defaults,
        run=runner,
        engine_factory=lambda url: fake_engine,
        sleep=record_sleep,
    )

    assert "COMPOSE_PROJECT_NAME=my_project" in env_path.read_text(encoding="utf-8")
    assert "export UID; docker-compose up server" in capsys.readouterr().out


@pytest.mark.functional
def test_declined_confirmation_issues_no_statements(env_path, runner):
    def factory(url):
        raise AssertionError("database must not be touched")

    with pytest.raises(ConfirmationDeclinedError):
        cli.run_setup(
            SetupConfig(env_path=env_path),
            environ={},
            prompt=_accept_defaults,
            prompt_yes_no=lambda message, default: False,
            run=runner,
            engine_factory=factory,
        )

    assert [args for args, _ in runner.calls] == [("server", "build")]
    assert env_path.exists()


@pytest.mark.functional
def test_unreachable_database_skips_reset(env_path, make_engine, runner, sleeps, record_sleep):
    engine = make_engine(failures=30)

    with pytest.raises(DatabaseUnreachableError):
        cli.run_setup(
            SetupConfig(env_path=env_path, assume_yes=True),
            environ={},
            prompt=_accept_defaults,
            run=runner,
            engine_factory=lambda url: engine,
            sleep=record_sleep,
        )

    assert engine.executed == []
    assert engine.disposed
    assert len(sleeps) == 29
    assert [args for args, _ in runner.calls] == [("server", "build")]


# ============================================================================
# main() exit codes
# ============================================================================

@pytest.fixture
def patched_setup(monkeypatch, runner):
    """Route main() through run_setup with fakes injected."""

    monkeypatch.delenv("CONFIRM_DROP", raising=False)
    monkeypatch.setattr(cli, "detect_node_major_version", lambda: None)
    original = cli.run_setup
    injected = {}

    def fake_run_setup(config, **kwargs):
        kwargs.update(injected)
        return original(config, **kwargs)

    monkeypatch.setattr(cli, "run_setup", fake_run_setup)
    injected.update(prompt=_accept_defaults, run=runner)
    return injected


def test_main_declined_returns_one(env_path, patched_setup, monkeypatch, capsys):
    for key in ("DATABASE_NAME", "DATABASE_HOST", "ROOT_DATABASE_URL"):
        monkeypatch.delenv(key, raising=False)
    engine_urls = []
    patched_setup.update(
        prompt_yes_no=lambda message, default: False,
        engine_factory=lambda url: engine_urls.append(url),
    )

    assert cli.main(["--env-file", str(env_path)]) == 1
    assert engine_urls == []
    assert "Confirmation failed" in capsys.readouterr().err


def test_main_success_returns_zero(env_path, patched_setup, fake_engine, record_sleep):
    patched_setup.update(engine_factory=lambda url: fake_engine, sleep=record_sleep)

    assert cli.main(["--env-file", str(env_path), "--yes", "demo_project"]) == 0
    assert fake_engine.disposed
    assert "COMPOSE_PROJECT_NAME=demo_project" in env_path.read_text(encoding="utf-8")


def test_main_unreachable_returns_one(env_path, patched_setup, make_engine, record_sleep, capsys):
    engine = make_engine(failures=30)
    patched_setup.update(engine_factory=lambda url: engine, sleep=record_sleep)

    assert cli.main(["--env-file", str(env_path), "--yes"]) == 1
    assert "never came up" in capsys.readouterr().err


def test_main_aborted_prompt_returns_one(env_path, patched_setup, monkeypatch, capsys):
    monkeypatch.delenv("DATABASE_NAME", raising=False)
    monkeypatch.setattr("builtins.input", lambda message: "exit")
    patched_setup.pop("prompt")

    assert cli.main(["--env-file", str(env_path)]) == 1
    assert "Setup cancelled." in capsys.readouterr().out
    assert not env_path.exists()


def test_main_unexpected_error_returns_one(env_path, patched_setup, capsys):
    def broken_run(*args, env=None, capture_output=False):
        raise RuntimeError("yarn exploded")

    patched_setup.update(run=broken_run)

    assert cli.main(["--env-file", str(env_path)]) == 1
    assert "yarn exploded" in capsys.readouterr().err


def test_prompt_returns_default_on_empty(monkeypatch):
    monkeypatch.setattr("builtins.input", lambda message: "")
    assert cli._prompt("Database name", "graphile_starter") == "graphile_starter"


def test_prompt_yes_no(monkeypatch):
    responses = iter(["maybe", "y"])
    monkeypatch.setattr("builtins.input", lambda message: next(responses))
    assert cli._prompt_yes_no("Drop?", False) is True


def test_prompt_requires_value_without_default(monkeypatch, capsys):
    responses = iter(["", "  ", "demo"])
    monkeypatch.setattr("builtins.input", lambda message: next(responses))
    assert cli._prompt("Database name") == "demo"
    assert capsys.readouterr().out.count("A value is required") == 2


def test_prompt_shows_default_in_question(monkeypatch):
    questions = []

    def fake_input(message):
        questions.append(message)
        return "custom"

    monkeypatch.setattr("builtins.input", fake_input)
    assert cli._prompt("Database name", "graphile_starter") == "custom"
    assert questions == ["Database name [graphile_starter]: "]


@pytest.mark.parametrize("answer,default,expected", [("", False, False), ("", True, True), ("NO", True, False), ("yes", False, True)])
def test_prompt_yes_no_answers(monkeypatch, answer, default, expected):
    monkeypatch.setattr("builtins.input", lambda message: answer)
    assert cli._prompt_yes_no("Drop?", default) is expected


def test_prompt_yes_no_exit_aborts(monkeypatch):
    monkeypatch.setattr("builtins.input", lambda message: "EXIT")
    with pytest.raises(SetupAborted):
        cli._prompt_yes_no("Drop?", False)
