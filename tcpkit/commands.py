"""Compose command lines into Redis request arrays and collect them back."""

from __future__ import annotations

import re
from dataclasses import dataclass, field


def split_words(text: str, delimiters: str) -> list[str]:
    """Split ``text`` on any of the delimiter characters, dropping empty words."""
    if not delimiters:
        return [text] if text else []
    pattern = "[" + re.escape(delimiters) + "]"
    return [word for word in re.split(pattern, text) if word]


def compose_input_to_bulk(input_line: str) -> str:
    """Turn a space separated command line into a RESP array of bulk strings."""
    words = split_words(input_line, " ")
    parts = [f"*{len(words)}"]
    for word in words:
        parts.append(f"${len(word.encode('utf-8'))}")
        parts.append(word)
    return "\r\n".join(parts) + "\r\n"


@dataclass
class InputComposer:
    """Collects the lines of a RESP request array, one line at a time."""

    param_count: int = 0
    params: list[tuple[int, str]] = field(default_factory=list)

    def clear(self) -> None:
        """Forget everything collected so far."""
        self.param_count = 0
        self.params.clear()

    def add_line(self, line: str) -> bool:
        """Add one line (without CRLF); return True once the array is complete."""
        if not line:
            raise ValueError("empty line")
        marker = line[0]
        if marker == "*":
            self.param_count = int(line[1:])
        elif marker == "$":
            self.params.append((int(line[1:]), ""))
        else:
            if not self.params:
                raise ValueError("parameter value before its length line")
            length, _ = self.params[-1]
            self.params[-1] = (length, line)
            return len(self.params) == self.param_count
        return False