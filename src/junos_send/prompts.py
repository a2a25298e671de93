"""Interactive prompts: two-way choices and device credentials.

Environment variables:
- JUNOS_SEND_USERNAME: Skip the username prompt
- JUNOS_SEND_PASSWORD: Skip the password prompt
"""
import getpass
import os
from typing import Callable

from .devices.base import Credentials

InputFn = Callable[[str], str]


def force_select(question: str, first: str, second: str, input_fn: InputFn = input) -> str:
    """Ask until the answer is one of two options (case-insensitive).

    Returns:
        The chosen option, lower-cased
    """
    options = (first.lower(), second.lower())
    while True:
        answer = input_fn(question).strip().lower()
        if answer in options:
            return answer


def ask_yes_no(question: str, input_fn: InputFn = input) -> bool:
    return force_select(question, "y", "n", input_fn) == "y"


def confirm_commit(device: str, diff: str) -> bool:
    """Per-device commit decision shown after the diff."""
    return ask_yes_no(f"\nCommit changes to {device}? (y/n): ")


def ask_credentials(
    input_fn: InputFn = input,
    password_fn: Callable[[str], str] = getpass.getpass,
) -> Credentials:
    """Username and password for every device in the run."""
    username = os.environ.get("JUNOS_SEND_USERNAME") or input_fn("Enter Username: ")
    password = os.environ.get("JUNOS_SEND_PASSWORD") or password_fn("Enter Password: ")
    return Credentials(username=username.strip(), password=password.strip())
