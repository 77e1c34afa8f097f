"""
Tests for input validation utilities
"""
import pytest
from datetime import date, datetime, time
from validators import (
    ValidationError,
    validate_required_fields,
    validate_email,
    validate_phone,
    validate_string_length,
    validate_number_range,
    validate_coordinates,
    validate_contact_request,
    validate_choice,
    sanitize_string,
    normalize_phone,
    format_phone_number,
    parse_datetime,
    parse_optional_datetime,
    parse_date,
    parse_time,
    parse_float,
    parse_bool
)


@pytest.mark.unit
class TestRequiredFields:
    """Tests for required fields validation"""

    def test_validate_all_fields_present(self):
        data = {'name': 'John', 'email': 'john@example.com'}
        is_valid, error = validate_required_fields(data, ['name', 'email'])
        assert is_valid is True
        assert error is None

    def test_validate_missing_field(self):
        is_valid, error = validate_required_fields({'name': 'John'}, ['name', 'email'])
        assert is_valid is False
        assert 'email' in error

    def test_validate_empty_and_none_fields(self):
        is_valid, error = validate_required_fields({'name': '', 'email': None}, ['name', 'email'])
        assert is_valid is False
        assert 'name' in error and 'email' in error


@pytest.mark.unit
class TestEmailValidation:

    def test_valid_email(self):
        assert validate_email('tech@plumbing.example.com') == (True, None)

    def test_invalid_email_no_at(self):
        is_valid, _ = validate_email('plumbing.example.com')
        assert is_valid is False

    def test_invalid_email_too_long(self):
        is_valid, error = validate_email('a' * 250 + '@example.com')
        assert is_valid is False
        assert 'too long' in error

    def test_empty_email(self):
        is_valid, _ = validate_email('')
        assert is_valid is False


@pytest.mark.unit
class TestPhoneValidation:

    def test_valid_phone_with_formatting(self):
        assert validate_phone('(555) 123-4567')[0] is True

    def test_valid_phone_with_country_code(self):
        assert validate_phone('+1 555 123 4567')[0] is True

    def test_invalid_phone_too_short(self):
        assert validate_phone('12345')[0] is False

    def test_invalid_phone_letters(self):
        assert validate_phone('555-CALL-NOW')[0] is False


@pytest.mark.unit
class TestStringAndNumberValidation:

    def test_string_length_bounds(self):
        assert validate_string_length('abc', 1, 5)[0] is True
        assert validate_string_length('', 1, 5)[0] is False
        assert validate_string_length('abcdef', 1, 5)[0] is False
        assert validate_string_length(12, 1, 5)[0] is False

    def test_number_range(self):
        assert validate_number_range(5, 0, 10)[0] is True
        assert validate_number_range(-1, 0, 10)[0] is False
        assert validate_number_range(11, 0, 10)[0] is False

    def test_bool_is_not_a_number(self):
        assert validate_number_range(True, 0, 10)[0] is False

    def test_coordinates(self):
        assert validate_coordinates(40.7, -74.0) == (True, None)
        is_valid, error = validate_coordinates(91, 0)
        assert is_valid is False
        assert 'latitude' in error
        is_valid, error = validate_coordinates(0, 181)
        assert is_valid is False
        assert 'longitude' in error


@pytest.mark.unit
class TestStringSanitization:

    def test_sanitize_removes_null_bytes_and_trims(self):
        assert sanitize_string('  Hello\x00World  ') == 'HelloWorld'

    def test_sanitize_limits_length(self):
        assert len(sanitize_string('a' * 2000, max_length=100)) == 100

    def test_sanitize_handles_non_string(self):
        assert sanitize_string(123) == '123'


@pytest.mark.unit
class TestPhoneNormalization:

    def test_formats_collapse_to_digits(self):
        assert normalize_phone('+1 (555) 123-4567') == '5551234567'
        assert normalize_phone('555.123.4567') == '5551234567'

    def test_non_us_lengths_keep_all_digits(self):
        assert normalize_phone('+44 20 7946 0958') == '442079460958'

    def test_empty_values(self):
        assert normalize_phone(None) is None
        assert normalize_phone('') is None
        assert normalize_phone('ext') is None


@pytest.mark.unit
class TestPhoneFormatting:

    def test_us_numbers(self):
        assert format_phone_number('5551234567') == '(555) 123-4567'
        assert format_phone_number('+1 555.123.4567') == '(555) 123-4567'

    def test_other_lengths_unchanged(self):
        assert format_phone_number('+44 20 7946 0958') == '+44 20 7946 0958'
        assert format_phone_number('555-1234') == '555-1234'

    def test_empty_values(self):
        assert format_phone_number(None) is None
        assert format_phone_number('') == ''


@pytest.mark.unit
class TestParsers:

    def test_parse_datetime_converts_offsets_to_naive_utc(self):
        assert parse_datetime('2026-03-02T10:00:00-05:00') == datetime(2026, 3, 2, 15, 0)
        assert parse_datetime('2026-03-02T10:00:00Z') == datetime(2026, 3, 2, 10, 0)

    def test_parse_datetime_keeps_naive_input(self):
        assert parse_datetime('2026-03-02T10:00:00') == datetime(2026, 3, 2, 10, 0)

    def test_parse_datetime_rejects_garbage(self):
        with pytest.raises(ValidationError) as exc:
            parse_datetime('next tuesday', 'scheduled_start')
        assert exc.value.field == 'scheduled_start'

    def test_parse_datetime_requires_value(self):
        with pytest.raises(ValidationError):
            parse_datetime(None, 'start_time')

    def test_parse_optional_datetime(self):
        assert parse_optional_datetime(None) is None
        assert parse_optional_datetime('') is None

    def test_parse_date(self):
        assert parse_date('2026-03-02') == date(2026, 3, 2)
        with pytest.raises(ValidationError):
            parse_date('03/02/2026')

    def test_parse_time(self):
        assert parse_time('08:30') == time(8, 30)
        assert parse_time('17:00:15') == time(17, 0, 15)
        with pytest.raises(ValidationError):
            parse_time('25:00')

    def test_parse_float_accepts_numeric_strings(self):
        assert parse_float('40.5', 'lat') == 40.5
        with pytest.raises(ValidationError):
            parse_float('north', 'lat')
        with pytest.raises(ValidationError):
            parse_float(True, 'lat')

    def test_parse_float_rejects_non_finite_values(self):
        for value in ('nan', 'inf', float('-inf')):
            with pytest.raises(ValidationError):
                parse_float(value, 'radius_meters')

    def test_parse_bool(self):
        assert parse_bool('true') is True
        assert parse_bool('0') is False
        assert parse_bool(None, default=True) is True

    def test_validate_choice(self):
        assert validate_choice('tech', ('tech', 'vehicle'), 'type') == 'tech'
        with pytest.raises(ValidationError) as exc:
            validate_choice('boat', ('tech', 'vehicle'), 'type')
        assert 'tech, vehicle' in exc.value.message


@pytest.mark.unit
class TestContactRequestValidation:

    def test_valid_contact(self):
        data = {'first_name': 'Dana', 'email': 'dana@example.com', 'phone': '555-123-4567'}
        assert validate_contact_request(data) == (True, None)

    def test_missing_first_name(self):
        is_valid, error = validate_contact_request({'last_name': 'Smith'})
        assert is_valid is False
        assert 'first_name' in error

    def test_partial_update_skips_required(self):
        assert validate_contact_request({'last_name': 'Smith'}, partial=True) == (True, None)

    def test_invalid_email(self):
        is_valid, error = validate_contact_request({'first_name': 'Dana', 'email': 'nope'})
        assert is_valid is False
        assert 'email' in error

    def test_coordinates_must_come_in_pairs(self):
        is_valid, _ = validate_contact_request({'first_name': 'Dana', 'latitude': 40.0})
        assert is_valid is False
