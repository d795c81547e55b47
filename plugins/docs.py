"""HTML documentation page listing every registered plugin endpoint."""
import html

_PAGE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: sans-serif; margin: 2rem; }}
table {{ border-collapse: collapse; width: 100%; }}
th, td {{ border: 1px solid #ddd; padding: .4rem .6rem; text-align: left; }}
.deprecated {{ color: #999; text-decoration: line-through; }}
</style>
</head>
<body>
<h1>{title}</h1>
<p>Machine readable spec: <a href="{openapi}">{openapi}</a></p>
<table>
<tr><th>Method</th><th>Path</th><th>Name</th><th>Description</th><th>Auth</th><th>Tags</th></tr>
{rows}
</table>
</body>
</html>
"""


def _row(endpoint):
    css = ' class="deprecated"' if endpoint.deprecated else ''
    return (
        f"<tr{css}><td>{endpoint.method}</td><td>{html.escape(endpoint.path)}</td>"
        f"<td>{html.escape(endpoint.name)}</td><td>{html.escape(endpoint.description)}</td>"
        f"<td>{'yes' if endpoint.authentication else 'no'}</td>"
        f"<td>{html.escape(', '.join(endpoint.tags))}</td></tr>"
    )


async def handle(request, response):
    state = request.app.state
    endpoints = state.registry.list_endpoints(sort_by='path')
    page = _PAGE.format(
        title='Plugin API Docs',
        openapi=f"{state.settings.api_v1_prefix}/docs/openapi.json",
        rows='\n'.join(_row(e) for e in endpoints),
    )
    return response.html(page)


plugin = {
    'path': '/docs',
    'method': 'GET',
    'name': 'docs',
    'description': 'Documentation page',
    'tags': ['main'],
    'rate_limit': {'limit': 10, 'window_ms': 60000},
    'timeout_ms': 5000,
    'exec': handle,
}
