"""Liveness probe plugin: echoes an optional message back."""


async def handle(request, response):
    message = request.query_params.get('message')
    return response.json({'success': True, 'msg': message or ''})


async def health():
    return {'status': 'ok'}


plugin = {
    'path': '/api/ping',
    'method': 'GET',
    'name': 'ping',
    'description': 'Connectivity check',
    'tags': ['main'],
    'authentication': False,
    'rate_limit': {'limit': 10, 'window_ms': 60000},
    'timeout_ms': 5000,
    'parameter': [
        {'name': 'message', 'required': False, 'type': 'string', 'max': 200},
    ],
    'exec': handle,
    'health_check': health,
}
