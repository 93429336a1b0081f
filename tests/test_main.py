import os

import pytest

from colorgg import main


@pytest.fixture(autouse=True)
def keep_cwd():
    cwd = os.getcwd()
    yield
    os.chdir(cwd)


def test_intents_cover_message_content_and_members():
    intents = main.build_intents()
    assert intents.message_content is True
    assert intents.members is True
    assert intents.guilds is True


def test_load_environment_requires_token(monkeypatch):
    monkeypatch.setattr(main, "load_dotenv", lambda **kwargs: None)
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)

    with pytest.raises(SystemExit):
        main.load_environment()


def test_load_environment_returns_token(monkeypatch):
    monkeypatch.setattr(main, "load_dotenv", lambda **kwargs: None)
    monkeypatch.setenv("DISCORD_BOT_TOKEN", "abc")

    assert main.load_environment() == "abc"


def test_resolve_base_dir_prefers_env(monkeypatch, tmp_path):
    monkeypatch.setenv("COLORGG_HOME", str(tmp_path))
    assert main.resolve_base_dir() == tmp_path.resolve()


def test_main_maps_async_exit_code(monkeypatch):
    async def fake_async_main():
        return 3

    monkeypatch.setattr(main, "async_main", fake_async_main)
    assert main.main() == 3


def test_main_handles_keyboard_interrupt(monkeypatch):
    async def interrupted():
        raise KeyboardInterrupt

    monkeypatch.setattr(main, "async_main", interrupted)
    assert main.main() == 0
