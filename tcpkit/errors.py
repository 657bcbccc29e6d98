"""A small family of application error codes with their messages."""

from __future__ import annotations

import argparse
import enum

CATEGORY_NAME = "my_errors"

UNKNOWN_MESSAGE = "unknow error!"


class MyErrors(enum.IntEnum):
    """Application error codes."""

    ERROR_1 = 1
    ERROR_2 = 2
    ERROR_3 = 3


_MESSAGES = {
    MyErrors.ERROR_1: "error1 occured.",
    MyErrors.ERROR_2: "error2 occured.",
    MyErrors.ERROR_3: "error3 occured.",
}


def error_message(code: int) -> str:
    """Return the message for an error code, or a generic one if unknown."""
    try:
        return _MESSAGES[MyErrors(code)]
    except ValueError:
        return UNKNOWN_MESSAGE


class MyError(Exception):
    """Exception carrying one of the application error codes."""

    category = CATEGORY_NAME

    def __init__(self, code: int) -> None:
        self.code = int(code)
        super().__init__(error_message(self.code))

    @property
    def message(self) -> str:
        return self.args[0]


def make_error(code: int) -> MyError:
    """Build the exception for an error code."""
    return MyError(code)


def main(argv=None) -> int:
    """Print the message of the first error code."""
    argparse.ArgumentParser(prog="error-demo").parse_args(argv)
    print(make_error(MyErrors.ERROR_1).message)
    return 0