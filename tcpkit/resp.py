"""Incremental, character-driven parser for Redis (RESP) server replies."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod

_DIGITS = frozenset("0123456789")


class ParseResult(enum.Enum):
    """Outcome of feeding one character to a reply item."""

    INIT = enum.auto()
    CONTINUE = enum.auto()
    FINISHED = enum.auto()
    ERROR = enum.auto()


class ReplyParseError(ValueError):
    """Raised when a reply cannot be parsed.

    ``items`` holds the replies completed before the error was met.
    """

    def __init__(self, message: str, items=()) -> None:
        super().__init__(message)
        self.items = list(items)


class ReplyItem(ABC):
    """One reply value, built up character by character."""

    @abstractmethod
    def feed(self, c: str) -> ParseResult:
        """Consume one character and report the parse state."""

    @abstractmethod
    def __str__(self) -> str:
        """Render the value the way redis-cli shows it."""


class ArrayItem(ReplyItem):
    """Array reply, introduced by ``*``."""

    class _State(enum.Enum):
        LENGTH = enum.auto()
        LENGTH_LF = enum.auto()
        ITEM_HEADER = enum.auto()
        ITEM_CONTENT = enum.auto()

    def __init__(self) -> None:
        self.count = 0
        self.items: list[ReplyItem] = []
        self._count_text = ""
        self._state = self._State.LENGTH
        self._current: ReplyItem | None = None

    def __str__(self) -> str:
        return "[" + ", ".join(str(item) for item in self.items) + "]"

    def feed(self, c: str) -> ParseResult:
        state = self._state
        if state is self._State.LENGTH:
            if c != "\r":
                if c in _DIGITS or (c == "-" and not self._count_text):
                    self._count_text += c
                else:
                    return ParseResult.ERROR
            else:
                try:
                    self.count = int(self._count_text)
                except ValueError:
                    return ParseResult.ERROR
                self._state = self._State.LENGTH_LF
            return ParseResult.CONTINUE

        if state is self._State.LENGTH_LF:
            if c != "\n":
                return ParseResult.ERROR
            self._state = self._State.ITEM_HEADER
            if self.count <= 0:
                return ParseResult.FINISHED
            return ParseResult.CONTINUE

        if state is self._State.ITEM_HEADER:
            self._current = create_item(c)
            if self._current is None:
                return ParseResult.ERROR
            self.items.append(self._current)
            self._state = self._State.ITEM_CONTENT
            return ParseResult.CONTINUE

        result = self._current.feed(c)
        if result is ParseResult.ERROR:
            return ParseResult.ERROR
        if result is ParseResult.FINISHED:
            if len(self.items) >= self.count:
                return ParseResult.FINISHED
            self._state = self._State.ITEM_HEADER
        return ParseResult.CONTINUE


class OneLineString(ReplyItem):
    """A single CRLF-terminated line."""

    class _State(enum.Enum):
        STRING = enum.auto()
        LF = enum.auto()

    def __init__(self) -> None:
        self.content = ""
        self._state = self._State.STRING

    def __str__(self) -> str:
        return self.content

    def feed(self, c: str) -> ParseResult:
        if self._state is self._State.STRING:
            if c == "\r":
                self._state = self._State.LF
            else:
                self.content += c
            return ParseResult.CONTINUE
        return ParseResult.FINISHED if c == "\n" else ParseResult.ERROR


class SimpleStringItem(OneLineString):
    """Status reply, introduced by ``+``."""


class ErrString(OneLineString):
    """Error reply, introduced by ``-``."""

    def __str__(self) -> str:
        return "(error) " + self.content


class NumberItem(OneLineString):
    """Integer reply, introduced by ``:``."""

    def __init__(self) -> None:
        super().__init__()
        self.number = -1

    def __str__(self) -> str:
        return f"(integer) {self.number}"

    def feed(self, c: str) -> ParseResult:
        result = super().feed(c)
        if result is ParseResult.FINISHED:
            try:
                self.number = int(self.content)
            except ValueError:
                return ParseResult.ERROR
        return result


class BulkString(ReplyItem):
    """Length-prefixed string, introduced by ``$``; length -1 means nil."""

    class _State(enum.Enum):
        LENGTH = enum.auto()
        LENGTH_LF = enum.auto()
        CONTENT = enum.auto()
        CONTENT_LF = enum.auto()

    def __init__(self) -> None:
        self.length = 0
        self.content = ""
        self._length_text = ""
        self._state = self._State.LENGTH

    def __str__(self) -> str:
        if self.length == -1:
            return "(nil)"
        return f'"{self.content}"'

    def feed(self, c: str) -> ParseResult:
        state = self._state
        if state is self._State.LENGTH:
            if c == "-" or c in _DIGITS:
                self._length_text += c
            elif c == "\r":
                self._state = self._State.LENGTH_LF
            return ParseResult.CONTINUE

        if state is self._State.LENGTH_LF:
            try:
                self.length = int(self._length_text)
            except ValueError:
                return ParseResult.ERROR
            if self.length in (0, -1):
                return ParseResult.FINISHED
            self._state = self._State.CONTENT
            return ParseResult.CONTINUE

        if state is self._State.CONTENT:
            if c == "\r":
                self._state = self._State.CONTENT_LF
            else:
                self.content += c
            return ParseResult.CONTINUE

        return ParseResult.FINISHED


_FACTORIES = {
    "*": ArrayItem,
    "+": SimpleStringItem,
    "-": ErrString,
    ":": NumberItem,
    "$": BulkString,
}


def create_item(c: str) -> ReplyItem | None:
    """Create the item a reply type marker introduces, or None if unknown."""
    factory = _FACTORIES.get(c)
    return factory() if factory else None


def _as_text(data) -> str:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data).decode("latin-1")
    return data


def parse_reply(data) -> ReplyItem:
    """Parse one complete reply from the start of ``data``.

    Characters before a known type marker are skipped. Raises
    ReplyParseError on malformed or incomplete input.
    """
    item: ReplyItem | None = None
    for pos, c in enumerate(_as_text(data)):
        if item is None:
            item = create_item(c)
            continue
        result = item.feed(c)
        if result is ParseResult.FINISHED:
            return item
        if result is ParseResult.ERROR:
            raise ReplyParseError(f"parse error at {c!r}, pos={pos}")
    raise ReplyParseError("incomplete reply")


class ReplyParser:
    """Streaming parser that accepts replies in arbitrary chunks."""

    def __init__(self) -> None:
        self._item: ReplyItem | None = None

    def reset(self) -> None:
        """Drop any partly parsed reply."""
        self._item = None

    def feed(self, data) -> list[ReplyItem]:
        """Consume a chunk and return the replies it completed."""
        done: list[ReplyItem] = []
        for pos, c in enumerate(_as_text(data)):
            if self._item is None:
                self._item = create_item(c)
                continue
            result = self._item.feed(c)
            if result is ParseResult.FINISHED:
                done.append(self._item)
                self._item = None
            elif result is ParseResult.ERROR:
                self._item = None
                raise ReplyParseError(f"parse error at {c!r}, pos={pos}", done)
        return done