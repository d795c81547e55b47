"""
Tests for descriptor validation and normalization.

Covers the structural manifest checks and the PluginDescriptor
normalization of optional fields and their aliases.
"""

import pytest

from plugin_api_server.plugin_runtime.descriptor import (
    DEFAULT_TIMEOUT_MS,
    ParameterSpec,
    PluginDescriptor,
    RateLimitSpec,
)
from plugin_api_server.plugin_runtime.errors import ManifestInvalid
from plugin_api_server.plugin_runtime.manifest import validate_manifest


async def _noop(request, response):
    return None


class TestValidateManifest:
    """Test validate_manifest structural checks."""

    def test_minimal_descriptor_is_valid(self):
        result = validate_manifest({'path': '/api/x', 'exec': _noop}, 'x.py')
        assert result.valid
        assert result.errors == []

    def test_non_mapping_is_rejected(self):
        result = validate_manifest(None, 'x.py')
        assert not result.valid
        assert result.errors == ["Plugin must export an object"]

        result = validate_manifest(['/api/x'], 'x.py')
        assert result.errors == ["Plugin must export an object"]

    def test_missing_path_and_exec_are_both_reported(self):
        result = validate_manifest({'method': 'GET'}, 'x.py')
        assert not result.valid
        assert "Plugin must have a valid 'path' property" in result.errors
        assert "Plugin must have a valid 'exec' function" in result.errors

    def test_exec_must_be_callable(self):
        result = validate_manifest({'path': '/api/x', 'exec': 'not callable'}, 'x.py')
        assert result.errors == ["Plugin must have a valid 'exec' function"]

    def test_unsupported_method(self):
        result = validate_manifest({'path': '/api/x', 'method': 'TRACE', 'exec': _noop}, 'x.py')
        assert result.errors == ["Method 'TRACE' is not supported. Use: GET, POST, PUT, DELETE, PATCH"]

    def test_method_is_case_insensitive(self):
        assert validate_manifest({'path': '/api/x', 'method': 'post', 'exec': _noop}, 'x.py').valid

    def test_relative_path_rejected(self):
        result = validate_manifest({'path': 'api/x', 'exec': _noop}, 'x.py')
        assert result.errors == ["Route path must start with '/'"]

    def test_all_errors_collected(self):
        result = validate_manifest({'path': 'api/x', 'method': 'HEAD'}, 'x.py')
        assert len(result.errors) == 3


class TestPluginDescriptor:
    """Test PluginDescriptor.from_mapping normalization."""

    def test_defaults(self):
        descriptor = PluginDescriptor.from_mapping({'path': '/api/x', 'exec': _noop}, 'sub/thing.py')
        assert descriptor.method == 'GET'
        assert descriptor.name == 'thing'
        assert descriptor.version == '1.0.0'
        assert descriptor.timeout_ms == DEFAULT_TIMEOUT_MS
        assert descriptor.authentication is False
        assert descriptor.deprecated is False
        assert descriptor.rate_limit is None
        assert descriptor.parameters == ()

    def test_aliases_are_accepted(self):
        descriptor = PluginDescriptor.from_mapping(
            {
                'path': '/api/x',
                'method': 'patch',
                'exec': _noop,
                'rateLimit': {'limit': 5, 'window': 1000},
                'timeout': 250,
                'healthCheck': lambda: True,
            },
            'x.py',
        )
        assert descriptor.method == 'PATCH'
        assert descriptor.rate_limit == RateLimitSpec(limit=5, window_ms=1000)
        assert descriptor.timeout_ms == 250
        assert callable(descriptor.health_check)

    def test_default_timeout_override(self):
        descriptor = PluginDescriptor.from_mapping({'path': '/api/x', 'exec': _noop}, 'x.py', default_timeout_ms=1234)
        assert descriptor.timeout_ms == 1234

    def test_tags_are_deduplicated(self):
        descriptor = PluginDescriptor.from_mapping(
            {'path': '/api/x', 'exec': _noop, 'tags': ['a', ' a ', 'b', None]}, 'x.py'
        )
        assert descriptor.tags == ('a', 'b')

    def test_parameters_bare_and_full(self):
        descriptor = PluginDescriptor.from_mapping(
            {
                'path': '/api/x',
                'exec': _noop,
                'parameter': ['id', {'name': 'q', 'required': False, 'type': 'String', 'max': 5}],
            },
            'x.py',
        )
        bare, full = descriptor.parameters
        assert bare == ParameterSpec(name='id', bare=True)
        assert full.type == 'string'
        assert full.required is False
        assert bare.as_public() == 'id'
        assert full.as_public() == {'name': 'q', 'required': False, 'type': 'string', 'max': 5}

    def test_unknown_keys_are_kept_as_extra(self):
        descriptor = PluginDescriptor.from_mapping({'path': '/api/x', 'exec': _noop, 'owner': 'ops'}, 'x.py')
        assert descriptor.extra == {'owner': 'ops'}

    @pytest.mark.parametrize(
        'field, value',
        [
            ('rate_limit', {'limit': 0, 'window_ms': 1000}),
            ('rate_limit', 'ten per minute'),
            ('timeout_ms', -5),
            ('health_check', 'yes'),
            ('parameter', [{'required': True}]),
            ('parameter', [{'name': 'q', 'min': '2'}]),
            ('parameter', [{'name': 'q', 'max': -1}]),
            ('parameter', [{'name': 'q', 'min': True}]),
            ('parameter', [{'name': 'q', 'pattern': '([a-z'}]),
            ('parameter', [{'name': 'q', 'pattern': 5}]),
        ],
    )
    def test_malformed_optional_fields(self, field, value):
        with pytest.raises(ManifestInvalid) as exc_info:
            PluginDescriptor.from_mapping({'path': '/api/x', 'exec': _noop, field: value}, 'x.py')
        assert exc_info.value.file == 'x.py'
        assert exc_info.value.errors
