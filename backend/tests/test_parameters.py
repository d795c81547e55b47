"""
Tests for request parameter validation.

Uses property-based testing for the length bounds and plain cases for the
type rules and message wording.
"""

import pytest
from hypothesis import given, strategies as st

from plugin_api_server.plugin_runtime.descriptor import ParameterSpec
from plugin_api_server.plugin_runtime.parameters import is_absent, matches_type, validate_parameters


class TestMatchesType:
    @pytest.mark.parametrize('value', ['1', '2.5', '-3', '', 4, 1.5, True])
    def test_number_accepts(self, value):
        assert matches_type(value, 'number')

    @pytest.mark.parametrize('value', ['abc', '1x', float('nan'), None, [1]])
    def test_number_rejects(self, value):
        assert not matches_type(value, 'number')

    def test_boolean(self):
        assert matches_type(True, 'boolean')
        assert matches_type('false', 'boolean')
        assert not matches_type('yes', 'boolean')

    def test_email(self):
        assert matches_type('a@b.io', 'email')
        assert not matches_type('a@b', 'email')
        assert not matches_type('a b@c.io', 'email')

    def test_url(self):
        assert matches_type('https://example.com/x', 'url')
        assert matches_type('http://localhost', 'url')
        assert not matches_type('ftp://example.com', 'url')

    def test_string(self):
        assert matches_type('x', 'string')
        assert not matches_type(5, 'string')

    def test_unknown_type_accepts_anything(self):
        assert matches_type(object(), 'text')
        assert matches_type(5, None)


class TestValidateParameters:
    def test_absent_values(self):
        assert is_absent(None)
        assert is_absent('')
        assert not is_absent(0)
        assert not is_absent(False)

    def test_required_missing(self):
        errors = validate_parameters([ParameterSpec(name='id')], {})
        assert errors == ["Parameter 'id' is required"]

    def test_required_empty_string_counts_as_missing(self):
        errors = validate_parameters([ParameterSpec(name='id')], {'id': ''})
        assert errors == ["Parameter 'id' is required"]

    def test_optional_absent_skips_other_checks(self):
        spec = ParameterSpec(name='q', required=False, type='number', min=3)
        assert validate_parameters([spec], {}) == []

    def test_bare_spec_only_checks_presence(self):
        spec = ParameterSpec(name='id', bare=True)
        assert validate_parameters([spec], {'id': 'anything goes'}) == []
        assert validate_parameters([spec], {}) == ["Parameter 'id' is required"]

    def test_type_and_length_messages(self):
        specs = [
            ParameterSpec(name='email', type='email'),
            ParameterSpec(name='name', type='string', min=3, max=5),
            ParameterSpec(name='code', type='string', pattern=r'^[A-Z]{3}$'),
        ]
        errors = validate_parameters(specs, {'email': 'nope', 'name': 'ab', 'code': 'abc'})
        assert errors == [
            "Parameter 'email' must be of type email",
            "Parameter 'name' must be at least 3 characters",
            "Parameter 'code' format is invalid",
        ]

    def test_max_length(self):
        errors = validate_parameters([ParameterSpec(name='name', max=2)], {'name': 'abc'})
        assert errors == ["Parameter 'name' must be at most 2 characters"]

    def test_length_ignored_for_numbers(self):
        assert validate_parameters([ParameterSpec(name='n', type='number', min=3)], {'n': 7}) == []

    def test_pattern_sees_json_spelling_of_booleans(self):
        spec = ParameterSpec(name='flag', pattern=r'^(true|false)$')
        assert validate_parameters([spec], {'flag': True}) == []
        assert validate_parameters([spec], {'flag': False}) == []
        assert validate_parameters([spec], {'flag': 'True'}) == ["Parameter 'flag' format is invalid"]

    def test_pattern_is_compiled(self):
        spec = ParameterSpec(name='code', pattern=r'^\d+$')
        assert spec.regex is not None
        assert spec.regex.pattern == r'^\d+$'

    def test_errors_follow_declaration_order(self):
        specs = [ParameterSpec(name='b'), ParameterSpec(name='a')]
        assert validate_parameters(specs, {}) == [
            "Parameter 'b' is required",
            "Parameter 'a' is required",
        ]

    @given(st.text(min_size=1, max_size=40))
    def test_length_bounds_property(self, value):
        spec = ParameterSpec(name='v', type='string', min=5, max=20)
        errors = validate_parameters([spec], {'v': value})
        within = 5 <= len(value) <= 20
        assert (errors == []) == within
