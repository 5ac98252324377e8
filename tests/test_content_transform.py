"""
Excerpt trimming and timestamp formatting.
"""

from datetime import datetime, timedelta, timezone

from skyshare.modules.crosspost.content_transform import (
    html_to_plain_text, parse_timestamp, to_iso_utc, trim_chars, trim_words,
)


def test_html_to_plain_text():
    markup = '<p>First &amp; foremost</p><p>Second<br/>line</p><script>alert(1)</script>'
    assert html_to_plain_text(markup) == 'First & foremost\n\nSecond\nline'


def test_html_to_plain_text_empty():
    assert html_to_plain_text(None) == ''
    assert html_to_plain_text('') == ''


def test_trim_words_short_text_unchanged():
    text = 'A short post about testing.'
    assert trim_words(text, 55) == text
    # Trimming twice gives the same result
    assert trim_words(trim_words(text, 55), 55) == text


def test_trim_words_appends_marker_only_when_cut():
    assert trim_words('one two three four', 2) == 'one two [...]'
    assert trim_words('one two', 2) == 'one two'


def test_trim_chars_respects_limit_and_word_boundary():
    text = 'alpha beta gamma delta epsilon'
    trimmed = trim_chars(text, 20, ' [...]')
    assert trimmed == 'alpha beta [...]'
    assert len(trimmed) <= 20


def test_trim_chars_short_text_unchanged():
    assert trim_chars('  already short  ', 400) == 'already short'


def test_trim_chars_single_long_word_is_cut():
    trimmed = trim_chars('x' * 50, 20, '...')
    assert trimmed == 'x' * 17 + '...'


def test_parse_timestamp_variants():
    expected = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
    assert parse_timestamp('2024-05-01 09:30:00') == expected
    assert parse_timestamp('2024-05-01T09:30:00Z') == expected
    assert parse_timestamp(expected.timestamp()) == expected
    assert parse_timestamp(datetime(2024, 5, 1, 9, 30)) == expected
    assert parse_timestamp('') is None


def test_to_iso_utc_converts_offsets():
    local = datetime(2024, 5, 1, 11, 30, 15, 123456, tzinfo=timezone(timedelta(hours=2)))
    assert to_iso_utc(local) == '2024-05-01T09:30:15+00:00'


def test_to_iso_utc_defaults_to_now():
    value = to_iso_utc()
    assert value.endswith('+00:00')
    assert abs(datetime.fromisoformat(value) - datetime.now(timezone.utc)) < timedelta(seconds=5)
