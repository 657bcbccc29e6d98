import pytest

from tcpkit.config import ConfigError, ProxyConfig, parse_config, read_config, split_tokens

SAMPLE = """\
# proxy settings
// another comment
server_ip = 127.0.0.1
server_port = 8388
local_port = 1080
shift_steps = 5
"""


def test_parse_sample():
    cfg = parse_config(SAMPLE)
    assert cfg == ProxyConfig("127.0.0.1", 8388, 1080, 5)
    assert cfg.server_endpoint == ("127.0.0.1", 8388)


def test_split_tokens_drops_empty():
    assert split_tokens("  a  b ", " ") == ["a", "b"]


def test_lines_without_three_tokens_are_ignored():
    text = SAMPLE + "local_port 9999\nshift_steps = 7 extra\n"
    cfg = parse_config(text)
    assert cfg.local_port == 1080
    assert cfg.shift_steps == 5


def test_later_values_override():
    cfg = parse_config(SAMPLE + "server_port = 9000\n")
    assert cfg.server_port == 9000


def test_surrounding_spaces_are_trimmed():
    text = SAMPLE.replace("local_port = 1080", "   local_port = 1080   ")
    assert parse_config(text).local_port == 1080


def test_commented_setting_is_skipped():
    text = SAMPLE.replace("shift_steps = 5", "# shift_steps = 5")
    with pytest.raises(ConfigError):
        parse_config(text)


def test_invalid_ip_raises():
    with pytest.raises(ConfigError):
        parse_config(SAMPLE.replace("127.0.0.1", "not-an-ip"))


def test_non_numeric_port_raises():
    with pytest.raises(ConfigError):
        parse_config(SAMPLE.replace("8388", "abc"))


def test_port_out_of_range_raises():
    with pytest.raises(ConfigError):
        parse_config(SAMPLE.replace("8388", "70000"))


def test_read_config_from_file(tmp_path):
    path = tmp_path / "proxy.conf"
    path.write_text(SAMPLE, encoding="utf-8")
    assert read_config(path) == parse_config(SAMPLE)


def test_read_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        read_config(tmp_path / "missing.conf")