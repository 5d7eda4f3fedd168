"""Confirmation prompts for destructive CLI actions."""

import sys


def is_interactive() -> bool:
    stdin = getattr(sys, "stdin", None)
    if stdin is None:
        return False
    try:
        return stdin.isatty()
    except (AttributeError, ValueError):
        # closed or replaced stream
        return False


def confirm_action(question: str, assume_yes: bool = False) -> bool:
    """
    Ask a yes/no question, defaulting to no.

    ``assume_yes`` mirrors the CLI ``--yes`` flag and skips the prompt. Without
    a terminal the action is refused rather than blocking on stdin.
    """
    if assume_yes:
        return True

    if not is_interactive():
        print("\nℹ️ Refusing destructive action without confirmation (no TTY detected). Pass --yes to proceed.")
        return False

    answer = input(f"\n❓ {question} (y/N): ").strip().lower()
    return answer in ("y", "yes")
