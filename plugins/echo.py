"""Authenticated JSON echo; useful for checking bearer setup and body validation."""


def handle(request, response):
    params = request.state.params
    request.state.logger.debug('echo from %s', params.get('name'))
    response.status(201)
    return {
        'success': True,
        'received': {
            'name': params.get('name'),
            'email': params.get('email'),
            'count': params.get('count'),
        },
    }


plugin = {
    'path': '/api/echo',
    'method': 'POST',
    'name': 'echo',
    'description': 'Echo the validated request body',
    'tags': ['main', 'debug'],
    'authentication': True,
    'rate_limit': {'limit': 30, 'window_ms': 60000},
    'timeout_ms': 2000,
    'parameter': [
        {'name': 'name', 'required': True, 'type': 'string', 'min': 2, 'max': 64},
        {'name': 'email', 'required': False, 'type': 'email'},
        {'name': 'count', 'required': False, 'type': 'number'},
    ],
    'exec': handle,
}
