"""Fresh on-disk reads of plugin modules.

Every `read` executes the file under a brand new, uniquely named module object
that is left out of ``sys.modules`` once the body has run. A reload therefore
always sees the current file contents and two reads never share state.
"""
from __future__ import annotations
import itertools
import logging
import pathlib
import sys
import types
from typing import Any

from plugin_api_server.plugin_runtime.errors import PluginSourceError

_log = logging.getLogger(__name__)

DESCRIPTOR_ATTR = 'plugin'
_MODULE_PREFIX = 'plugin_api_server._loaded_plugins'
_counter = itertools.count(1)


def _module_name(path: pathlib.Path) -> str:
    stem = ''.join(ch if ch.isalnum() else '_' for ch in path.stem)
    return f"{_MODULE_PREFIX}.{stem}_{next(_counter)}"


class SourceReader:
    """Loads the descriptor exported by a plugin source file."""

    def __init__(self, attribute: str = DESCRIPTOR_ATTR):
        self.attribute = attribute

    def read(self, path: pathlib.Path) -> Any:
        """Return the raw descriptor, or None when the module exports none.

        The source text is compiled directly instead of going through the
        import system so a stale ``__pycache__`` entry is never served for a
        file rewritten within the same second.

        Raises `PluginSourceError` when the file cannot be read or executed.
        """
        path = pathlib.Path(path)
        name = _module_name(path)
        module = types.ModuleType(name)
        module.__file__ = str(path)
        try:
            code = compile(path.read_text(encoding='utf-8'), str(path), 'exec')
            # Registered only while the body runs: decorators such as
            # @dataclass look the defining module up by name.
            sys.modules[name] = module
            try:
                exec(code, module.__dict__)
            finally:
                sys.modules.pop(name, None)
        except Exception as exc:  # noqa: BLE001 - plugin code can raise anything
            raise PluginSourceError(path.name, exc) from exc
        _log.debug("read plugin source file=%s module=%s", path.name, name)
        return getattr(module, self.attribute, None)
