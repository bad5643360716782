"""
CLI entrypoint for copyrepo package.
"""
import argparse
import sys
from pathlib import Path

import pyperclip
from colorama import init as colorama_init

from .core import (
    build_document,
    notify,
    resolve_root,
    CopyrepoError,
    OutputError,
)
from .tokens import (
    DEFAULT_MODEL,
    CharRatioEstimator,
    TiktokenEstimator,
    format_token_count,
)

def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return n


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="copyrepo",
        description="Copy the project tree + numbered file contents to the clipboard.",
    )
    p.add_argument(
        "root",
        nargs="?",
        type=Path,
        default=Path("."),
        help="Project root dir (default: current directory)",
    )
    sink = p.add_mutually_exclusive_group()
    sink.add_argument("--out", type=Path, help="Write the document to this file instead")
    sink.add_argument("--stdout", action="store_true", help="Print the document instead")
    p.add_argument(
        "--strict",
        action="store_true",
        help="Don't create .repoignore when missing, only warn",
    )
    p.add_argument(
        "--workers",
        type=_positive_int,
        default=None,
        help="Threads used to read files (default: Python's choice)",
    )
    p.add_argument(
        "--model",
        default=DEFAULT_MODEL,
        help=f"Model whose tokenizer is used for the count (default {DEFAULT_MODEL})",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return p.parse_args(argv)


def _make_estimator(model: str):
    estimator = TiktokenEstimator(model)
    try:
        estimator.load()
    except Exception as e:
        notify(
            f"Tokenizer for '{model}' unavailable ({e}); "
            "token count is a ~4 chars/token approximation.",
            level="warning",
        )
        return CharRatioEstimator()
    return estimator


def _write_output(text: str, ns: argparse.Namespace) -> str:
    if ns.stdout:
        sys.stdout.write(text)
        sys.stdout.write("\n")
        return "written to stdout"
    if ns.out:
        out_path = ns.out.resolve()
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(text, encoding="utf-8", newline="\n")
        except OSError as e:
            raise OutputError(f"Could not write to output file '{out_path}': {e}") from e
        return f"written to {out_path}"
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise OutputError(f"Could not copy to clipboard: {e}") from e
    return "copied to clipboard"


def main(argv=None) -> None:
    colorama_init()
    try:
        ns = _parse_args(argv)

        try:
            root = resolve_root(ns.root)
            if ns.verbose:
                notify(f"Scanning {root} …")
            estimator = _make_estimator(ns.model)
            doc = build_document(
                root,
                estimator=estimator,
                strict=ns.strict,
                workers=ns.workers,
                verbose=ns.verbose,
            )
            where = _write_output(doc.text, ns)
        except CopyrepoError as e:
            notify(f"Error: {e}", level="error")
            sys.exit(1)

        notify(
            f"Repository structure {where}. "
            f"Token count: {format_token_count(doc.token_count)}"
        )

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        notify(f"Unexpected error: {e}", level="error")
        sys.exit(1)

if __name__ == "__main__":
    main()
