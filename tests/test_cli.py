import argparse
import json
from pathlib import Path

import pytest

from yomi import cli
from yomi import server as server_util
from yomi.models import Token


class FakeTokenizer:
    def tokenize(self, text: str) -> list[Token]:
        return [Token(surface=ch, base_form=None, reading=ch, pos="名詞") for ch in text]


def test_cli_has_expected_commands() -> None:
    parser = cli.build_parser()
    subparsers = [
        action
        for action in parser._actions
        if isinstance(action, argparse._SubParsersAction)
    ]
    assert subparsers
    choices = set(subparsers[0].choices.keys())
    for name in ("serve", "annotate", "ssml", "vocab"):
        assert name in choices


def test_serve_parser_collects_vocab_files() -> None:
    parser = cli.build_parser()
    args = parser.parse_args(
        ["serve", "--vocab", "a.csv", "--vocab", "b.csv", "--port", "8000", "--probe-audio"]
    )
    assert args.vocab == ["a.csv", "b.csv"]
    assert args.port == 8000
    assert args.probe_audio is True


@pytest.mark.parametrize(
    "argv, debug",
    [
        (["serve"], False),
        (["serve", "--debug"], True),
        (["--debug", "serve"], True),
    ],
)
def test_debug_flag_before_or_after_serve(argv: list[str], debug: bool) -> None:
    assert cli.build_parser().parse_args(argv).debug is debug


def test_main_without_command_prints_help(capsys) -> None:
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_vocab_command_prints_counts(tmp_path: Path, capsys) -> None:
    path = tmp_path / "all.csv"
    path.write_text("expression,reading,tags\n猫,ねこ,JLPT_5\n概念,,JLPT_1\n", encoding="utf-8")
    assert cli.main(["vocab", str(path)]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["entries"] == 3
    assert payload["tiers"]["N5"] == 2
    assert payload["tiers"]["N1"] == 1


def test_vocab_command_missing_file(tmp_path: Path, capsys) -> None:
    assert cli.main(["vocab", str(tmp_path / "missing.csv")]) == 2
    assert "missing.csv" in capsys.readouterr().err


def test_annotate_command(tmp_path: Path, monkeypatch, capsys) -> None:
    path = tmp_path / "all.csv"
    path.write_text("expression,tags\n猫,JLPT_5\n", encoding="utf-8")
    monkeypatch.setattr(cli.annotate_util, "build_tokenizer", lambda _dict_dir: FakeTokenizer())
    assert cli.main(["annotate", "--vocab", str(path), "猫犬"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert [t["difficulty"] for t in payload["tokens"]] == ["N5", "N0"]


def test_annotate_command_requires_text(capsys) -> None:
    assert cli.main(["annotate"]) == 2
    assert "Text is required" in capsys.readouterr().err


def test_ssml_command(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli.annotate_util, "build_tokenizer", lambda _dict_dir: FakeTokenizer())
    assert cli.main(["ssml", "a&b"]) == 0
    out = capsys.readouterr().out.strip()
    assert out == (
        '<speak><mark name="token_0"/>a<mark name="token_1"/>&amp;'
        '<mark name="token_2"/>b<mark name="token_3"/></speak>'
    )


def test_serve_command_runs_server(monkeypatch) -> None:
    calls = []

    monkeypatch.setattr(server_util, "run", lambda config: calls.append(config))
    assert cli.main(["serve", "--host", "127.0.0.1", "--port", "9000"]) == 0
    assert calls[0].host == "127.0.0.1"
    assert calls[0].port == 9000
