"""Tests for input validation helpers."""
import pytest

from utils.validation import (
    sanitize_json_input,
    sanitize_list,
    sanitize_string,
    validate_email,
    validate_enum,
    validate_integer,
    validate_number,
    validate_url,
)


class TestStrings:
    def test_strips_control_characters_and_truncates(self):
        assert sanitize_string('  he\x00llo world  ', max_length=5) == 'hello'

    def test_empty_not_allowed(self):
        assert sanitize_string('   ', allow_empty=False) is None

    def test_list_drops_empty_items(self):
        assert sanitize_list(['a', '', None, '  b '], max_items=5) == ['a', 'b']
        assert sanitize_list('not a list') == []


class TestValidators:
    @pytest.mark.parametrize('email,valid', [
        ('ana@example.com', True), ('ana@example', False), ('', False), (None, False),
    ])
    def test_email(self, email, valid):
        assert validate_email(email) is valid

    @pytest.mark.parametrize('url,valid', [
        ('https://example.com/path', True), ('http://localhost:3000', True),
        ('ftp://example.com', False), ('example.com', False),
    ])
    def test_url(self, url, valid):
        assert validate_url(url) is valid

    def test_integer_clamps(self):
        assert validate_integer('150', min_value=0, max_value=100) == 100
        assert validate_integer('x') is None
        assert validate_integer(True) is None

    def test_number_is_strict(self):
        assert validate_number('7.5', 0, 10) == 7.5
        with pytest.raises(ValueError, match='answer must be at most 10'):
            validate_number(11, 0, 10, field_name='answer')
        with pytest.raises(ValueError, match='must be a number'):
            validate_number(float('nan'))

    def test_enum(self):
        assert validate_enum('30d', ['7d', '30d']) == '30d'
        assert validate_enum('30D', ['7d', '30d']) is None
        assert validate_enum('30D', ['7d', '30d'], case_sensitive=False) == '30d'


class TestSchema:
    SCHEMA = {
        'name': {'type': 'string', 'required': True, 'max_length': 10},
        'age': {'type': 'int', 'min': 0},
        'tier': {'type': 'enum', 'allowed_values': ['free', 'pro'], 'default': 'free'},
        'website_url': {'type': 'url', 'source': 'websiteUrl'},
    }

    def test_sanitizes_and_maps_source_keys(self):
        result = sanitize_json_input(
            {'name': ' Ana ', 'age': '-3', 'websiteUrl': 'https://ana.example.com', 'extra': 1}, self.SCHEMA
        )
        assert result == {'name': 'Ana', 'age': 0, 'tier': 'free', 'website_url': 'https://ana.example.com'}

    def test_required(self):
        with pytest.raises(ValueError, match="Field 'name' is required"):
            sanitize_json_input({}, self.SCHEMA)

    def test_bad_enum(self):
        with pytest.raises(ValueError, match="must be one of: free, pro"):
            sanitize_json_input({'name': 'Ana', 'tier': 'gold'}, self.SCHEMA)
