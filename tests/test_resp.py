import pytest

from tcpkit.resp import (
    ArrayItem,
    BulkString,
    ParseResult,
    ReplyParseError,
    ReplyParser,
    create_item,
    parse_reply,
)


def test_simple_string():
    assert str(parse_reply("+OK\r\n")) == "OK"


def test_resp_error():
    assert str(parse_reply("-Error message\r\n")) == "(error) Error message"


def test_resp_integer():
    item = parse_reply(":-1000\r\n")
    assert str(item) == "(integer) -1000"
    assert item.number == -1000


def test_bulk_string():
    assert str(parse_reply("$6\r\nfoobar\r\n")) == '"foobar"'


def test_bulk_nil():
    assert str(parse_reply("$-1\r\n")) == "(nil)"


def test_empty_array():
    assert str(parse_reply("*0\r\n")) == "[]"


def test_complicated_array():
    s = "*5\r\n:1\r\n:2\r\n:3\r\n:4\r\n$6\r\nfoobar\r\n"
    assert str(parse_reply(s)) == '[(integer) 1, (integer) 2, (integer) 3, (integer) 4, "foobar"]'


def test_array_of_arrays():
    s = "*2\r\n*3\r\n:1\r\n:2\r\n:3\r\n*2\r\n+Foo\r\n-Bar\r\n"
    assert str(parse_reply(s)) == "[[(integer) 1, (integer) 2, (integer) 3], [Foo, (error) Bar]]"


def test_null_element_in_array():
    s = "*3\r\n$3\r\nfoo\r\n$-1\r\n$3\r\nbar\r\n"
    assert str(parse_reply(s)) == '["foo", (nil), "bar"]'


def test_bytes_input():
    assert str(parse_reply(b"$6\r\nfoobar\r\n")) == '"foobar"'


def test_feed_char_by_char_reports_finished():
    item = create_item("*")
    results = [item.feed(c) for c in "0\r\n"]
    assert results[-1] is ParseResult.FINISHED
    assert isinstance(item, ArrayItem) and item.items == []


def test_create_item_unknown_marker():
    assert create_item("?") is None
    assert isinstance(create_item("$"), BulkString)


def test_bad_array_length_is_error():
    with pytest.raises(ReplyParseError):
        parse_reply("*x\r\n")


def test_missing_lf_is_error():
    with pytest.raises(ReplyParseError):
        parse_reply("+OK\rX")


def test_incomplete_reply():
    with pytest.raises(ReplyParseError):
        parse_reply("$6\r\nfoo")


def test_stream_parser_across_chunks():
    parser = ReplyParser()
    assert parser.feed("+O") == []
    first = parser.feed("K\r\n:4")
    assert [str(i) for i in first] == ["OK"]
    second = parser.feed("2\r\n$-1\r\n")
    assert [str(i) for i in second] == ["(integer) 42", "(nil)"]


def test_stream_parser_error_keeps_completed_items():
    parser = ReplyParser()
    with pytest.raises(ReplyParseError) as info:
        parser.feed("+OK\r\n*z")
    assert [str(i) for i in info.value.items] == ["OK"]
    assert [str(i) for i in parser.feed("+again\r\n")] == ["again"]


def test_stream_parser_reset_drops_partial():
    parser = ReplyParser()
    parser.feed("$6\r\nfoo")
    parser.reset()
    assert [str(i) for i in parser.feed("+OK\r\n")] == ["OK"]