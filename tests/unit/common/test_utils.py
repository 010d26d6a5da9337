"""Tests for common/utils.py"""

import pytest

from iconrestore.common.utils import ensure_directory, format_duration, parse_bool


class TestFormatDuration:

    @pytest.mark.parametrize('seconds, expected', [
        (0.5, '0.5s'),
        (0, '0.0s'),
        (45, '45s'),
        (75, '1m 15s'),
        (120, '2m'),
        (3661, '1h 1m 1s'),
        (-3, '0s'),
    ])
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestParseBool:

    @pytest.mark.parametrize('value', ['1', 'true', 'YES', 'y', ' on ', True])
    def test_true(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize('value', ['0', 'False', 'no', 'N', 'off', False])
    def test_false(self, value):
        assert parse_bool(value) is False

    @pytest.mark.parametrize('value', ['', 'maybe', '2'])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_bool(value)


def test_ensure_directory(tmp_path):
    target = tmp_path / 'a' / 'b'

    result = ensure_directory(str(target))

    assert result == target
    assert target.is_dir()
    # Existing directories are fine
    assert ensure_directory(target) == target
