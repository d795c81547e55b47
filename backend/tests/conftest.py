import json
import sys
import pathlib
import textwrap
import pytest
from fastapi import FastAPI
from starlette.requests import Request

# Ensure backend root (containing the 'plugin_api_server' package) is on sys.path
BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from plugin_api_server.core.config import Settings
from plugin_api_server.main import create_app
from plugin_api_server.plugin_runtime.host import RouteHost
from plugin_api_server.plugin_runtime.registry import PluginRegistry

TEST_TOKEN = 'secret-token'

PING_SOURCE = '''
async def handle(request, response):
    message = request.query_params.get('message')
    return response.json({'success': True, 'msg': message or ''})

plugin = {
    'path': '/api/ping',
    'method': 'GET',
    'name': 'ping',
    'tags': ['main'],
    'parameter': [{'name': 'message', 'required': False, 'type': 'text'}],
    'rateLimit': {'limit': 10, 'window': 60000},
    'timeout': 5000,
    'exec': handle,
    'healthCheck': lambda: {'status': 'ok', 'database': 'connected'},
}
'''


def plugin_source(path: str, method: str = 'GET', name: str | None = None, body: str = "{'path': PATH}", **fields) -> str:
    """Minimal plugin module whose exec returns `body` (an expression) as JSON."""
    lines = [
        f"PATH = {path!r}",
        "async def handle(request, response):",
        f"    return {body}",
        "plugin = {",
        "    'path': PATH,",
        f"    'method': {method!r},",
        "    'exec': handle,",
    ]
    if name is not None:
        lines.append(f"    'name': {name!r},")
    for key, value in fields.items():
        lines.append(f"    {key!r}: {value!r},")
    lines.append("}")
    return '\n'.join(lines) + '\n'


@pytest.fixture
def plugins_dir(tmp_path):
    directory = tmp_path / 'plugins'
    directory.mkdir()
    return directory


@pytest.fixture
def write_plugin(plugins_dir):
    def _write(file_name: str, source: str) -> pathlib.Path:
        target = plugins_dir / file_name
        target.write_text(textwrap.dedent(source), encoding='utf-8')
        return target
    return _write


@pytest.fixture
def host_app():
    """Bare FastAPI app used as the route host for registry level tests."""
    app = FastAPI()

    @app.get('/builtin')
    async def builtin():
        return {'ok': True}

    return app


@pytest.fixture
def registry(host_app, plugins_dir):
    return PluginRegistry(RouteHost(host_app.router), plugins_dir, auth_token=TEST_TOKEN)


@pytest.fixture
def settings(plugins_dir):
    return Settings(plugins_dir=plugins_dir, hot_reload=False, auth_token=TEST_TOKEN, log_level='DEBUG')


@pytest.fixture
def app_factory(settings):
    def _make(**overrides):
        cfg = settings.model_copy(update=overrides) if overrides else settings
        return create_app(cfg)
    return _make


@pytest.fixture
def auth_headers():
    return {'Authorization': f'Bearer {TEST_TOKEN}'}


def build_request(
    method: str = 'GET',
    path: str = '/api/test',
    query: str = '',
    headers: dict | None = None,
    body=None,
    client=('10.0.0.1', 50000),
) -> Request:
    raw_headers = [(k.lower().encode('latin-1'), v.encode('latin-1')) for k, v in (headers or {}).items()]
    if body is None:
        payload = b''
    elif isinstance(body, bytes):
        payload = body
    else:
        payload = json.dumps(body).encode('utf-8')
        raw_headers.append((b'content-type', b'application/json'))
    scope = {
        'type': 'http',
        'http_version': '1.1',
        'method': method,
        'scheme': 'http',
        'path': path,
        'raw_path': path.encode('utf-8'),
        'root_path': '',
        'query_string': query.encode('utf-8'),
        'headers': raw_headers,
        'client': client,
        'server': ('testserver', 80),
    }

    async def receive():
        return {'type': 'http.request', 'body': payload, 'more_body': False}

    return Request(scope, receive)


@pytest.fixture
def make_request():
    return build_request
