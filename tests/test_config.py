import pytest

import coinfeedbot.config as config


def test_parse_duration_units():
    assert config.parse_duration("45") == 45
    assert config.parse_duration("30m") == 30 * 60
    assert config.parse_duration("6h") == 6 * 3600
    assert config.parse_duration("1d") == 86400


def test_parse_duration_invalid():
    with pytest.raises(ValueError):
        config.parse_duration("xh")


def test_cache_ttl_defaults():
    assert config.TOP_COINS_TTL == 30 * 60
    assert config.ALL_COINS_TTL == 6 * 3600


def test_parse_time_basic():
    assert config.parse_time("09:00:00") == (9, 0, 0)
    assert config.parse_time("7:05:09") == (7, 5, 9)
    assert config.parse_time("23:59:59") == (23, 59, 59)


@pytest.mark.parametrize("value", ["24:00:00", "25:00:00", "10:60:00", "10:00:60"])
def test_parse_time_out_of_range(value):
    with pytest.raises(ValueError):
        config.parse_time(value)


@pytest.mark.parametrize("value", ["9:00", "abc", "123:00:00", "09-00-00"])
def test_parse_time_bad_format(value):
    with pytest.raises(ValueError):
        config.parse_time(value)


def test_parse_interval_seconds():
    assert config.parse_interval("02:30:00") == 9000
    assert config.parse_interval("00:00:01") == 1


def test_parse_interval_rejects_zero():
    with pytest.raises(ValueError):
        config.parse_interval("00:00:00")
