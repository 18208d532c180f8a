from __future__ import annotations

import argparse
import importlib
import json
import sys
from pathlib import Path
from typing import Optional

from . import annotate as annotate_util
from . import config as config_util
from . import vocab as vocab_util
from .log import configure_logging
from .service import annotate_payload
from .ssml import build_ssml


def _resolve_config(args: argparse.Namespace) -> config_util.ServiceConfig:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    config = config_util.load_config(config_path)
    vocab = getattr(args, "vocab", None)
    return config_util.apply_overrides(
        config,
        vocabulary_paths=tuple(str(Path(p).resolve()) for p in vocab) if vocab else None,
        dictionary_dir=getattr(args, "dict", None),
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
        synthesis_timeout=getattr(args, "timeout", None),
        probe_audio_duration=True if getattr(args, "probe_audio", False) else None,
    )


def _read_text_arg(args: argparse.Namespace) -> Optional[str]:
    if args.file:
        return Path(args.file).read_text(encoding="utf-8")
    return args.text


def _print_json(payload: dict) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")


def _serve(args: argparse.Namespace) -> int:
    try:
        config = _resolve_config(args)
    except (FileNotFoundError, ValueError) as exc:
        sys.stderr.write(f"{exc}\n")
        return 2
    server_util = importlib.import_module("yomi.server")
    server_util.run(config)
    return 0


def _annotate(args: argparse.Namespace) -> int:
    text = _read_text_arg(args)
    if not text or not text.strip():
        sys.stderr.write("Text is required.\n")
        return 2
    try:
        config = _resolve_config(args)
        tokenizer = annotate_util.build_tokenizer(config.dictionary_path)
        vocabulary = vocab_util.load_vocabulary(list(config.vocabulary_paths))
    except (FileNotFoundError, RuntimeError, ValueError) as exc:
        sys.stderr.write(f"{exc}\n")
        return 2
    tokens = annotate_util.annotate_tokens(tokenizer.tokenize(text), vocabulary)
    _print_json(annotate_payload(tokens))
    return 0


def _ssml(args: argparse.Namespace) -> int:
    text = _read_text_arg(args)
    if not text or not text.strip():
        sys.stderr.write("Text is required.\n")
        return 2
    try:
        tokenizer = annotate_util.build_tokenizer(Path(args.dict) if args.dict else None)
    except (FileNotFoundError, RuntimeError) as exc:
        sys.stderr.write(f"{exc}\n")
        return 2
    sys.stdout.write(build_ssml(tokenizer.tokenize(text)) + "\n")
    return 0


def _vocab(args: argparse.Namespace) -> int:
    try:
        index = vocab_util.load_vocabulary(args.paths)
    except FileNotFoundError as exc:
        sys.stderr.write(f"{exc}\n")
        return 2
    _print_json(
        {
            "entries": len(index),
            "skipped": index.skipped,
            "tiers": index.tier_counts(),
        }
    )
    return 0


def _add_text_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("text", nargs="?", help="Japanese text")
    parser.add_argument("--file", help="Read text from a UTF-8 file instead")
    parser.add_argument("--dict", help="UniDic dictionary directory (default: unidic-lite)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="yomi")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the annotate/synthesize HTTP API")
    serve.add_argument("--config", help="Path to a JSON config file")
    serve.add_argument(
        "--vocab",
        action="append",
        help="Vocabulary CSV (expression, reading, tags); repeatable",
    )
    serve.add_argument("--dict", help="UniDic dictionary directory (default: unidic-lite)")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument(
        "--debug",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Verbose logging",
    )
    serve.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for the speech synthesizer (default: 30)",
    )
    serve.add_argument(
        "--probe-audio",
        dest="probe_audio",
        action="store_true",
        help="Measure returned audio when estimating timing without a duration hint",
    )
    serve.set_defaults(func=_serve)

    annotate = subparsers.add_parser(
        "annotate", help="Print tokens with reading, pos and JLPT tier as JSON"
    )
    _add_text_args(annotate)
    annotate.add_argument("--config", help="Path to a JSON config file")
    annotate.add_argument("--vocab", action="append", help="Vocabulary CSV; repeatable")
    annotate.set_defaults(func=_annotate)

    ssml = subparsers.add_parser("ssml", help="Print the SSML sent to the synthesizer")
    _add_text_args(ssml)
    ssml.set_defaults(func=_ssml)

    vocab = subparsers.add_parser("vocab", help="Summarize vocabulary CSV files")
    vocab.add_argument("paths", nargs="+", help="Vocabulary CSV files")
    vocab.set_defaults(func=_vocab)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    configure_logging(debug=bool(args.debug))
    return int(args.func(args))
