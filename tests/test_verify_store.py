"""Tests for the ``cardchat-verify`` command-line checks."""

from __future__ import annotations

import pytest
from pydantic import SecretStr

from cardchat.config.settings import settings
from cardchat.scripts.verify_store import _parse_args, main


class TestParseArgs:
    def test_defaults(self) -> None:
        args = _parse_args(["Charizard"])
        assert args.query == "Charizard"
        assert args.k is None
        assert args.ask is False
        assert args.api_key is None

    def test_flags(self) -> None:
        args = _parse_args(["--k", "3", "--ask", "--api-key", "sk-x", "Pikachu"])
        assert (args.k, args.ask, args.api_key, args.query) == (3, True, "sk-x", "Pikachu")


class TestFatalChecks:
    def test_missing_settings_exit(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
        monkeypatch.setattr(settings, "PG_HOST", None)
        monkeypatch.setattr(settings, "PG_PASSWORD", None)
        with pytest.raises(SystemExit) as exc_info:
            main(["Charizard", "--api-key", "sk-x"])
        assert exc_info.value.code == 1
        assert "Missing environment variables: PG_HOST, PG_PASSWORD" in capsys.readouterr().out

    def test_missing_api_key_exit(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
        monkeypatch.setattr(settings, "PG_HOST", "db.test")
        monkeypatch.setattr(settings, "PG_PASSWORD", SecretStr("secret"))
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setattr("cardchat.scripts.verify_store.load_dotenv", lambda *args, **kwargs: False)
        with pytest.raises(SystemExit) as exc_info:
            main(["Charizard"])
        assert exc_info.value.code == 1
        assert "No OpenAI key" in capsys.readouterr().out
