"""JSON configuration for the engine.

Each concern lives in its own ``<name>.json`` file under
``settings.CONFIG_DIR`` (overridable with ``BUDGET_INSIGHTS_CONFIG_DIR``).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .. import settings

PathLike = Union[str, Path]


def _config_path(config_name: str, config_dir: Optional[PathLike]) -> Path:
    # CONFIG_DIR is read at call time so tests and hosts can repoint it
    directory = Path(config_dir) if config_dir is not None else settings.CONFIG_DIR
    return directory / f"{config_name}.json"


def load_config(config_name: str, config_dir: Optional[PathLike] = None) -> Dict[str, Any]:
    """Read ``<config_dir>/<config_name>.json``.

    Raises:
        FileNotFoundError: When no such file exists
        json.JSONDecodeError: When the file is not valid JSON

    Example:
        >>> load_config('service_categories')['categories'][0]['name']
        'Communication Therapy'
    """
    path = _config_path(config_name, config_dir)
    if not path.is_file():
        raise FileNotFoundError(f"No configuration named '{config_name}' at {path}")
    with path.open('r', encoding='utf-8') as handle:
        return json.load(handle)


def get_config_value(
    config_name: str,
    *keys: Union[str, int],
    default: Any = None,
    config_dir: Optional[PathLike] = None,
) -> Any:
    """Walk ``keys`` into a config file, returning ``default`` on any miss.

    Integer keys index into lists, so ``('categories', 0, 'name')`` reads the
    first category's name.
    """
    try:
        value: Any = load_config(config_name, config_dir)
    except FileNotFoundError:
        return default
    for key in keys:
        try:
            value = value[key]
        except (KeyError, IndexError, TypeError):
            return default
    return value


def get_service_categories(config_dir: Optional[PathLike] = None) -> Dict[str, List[str]]:
    """Service category taxonomy as ``{name: [keyword, ...]}``.

    Keywords are lowercased and categories keep their file order.

    Raises:
        ValueError: If a category entry has no name
    """
    taxonomy: Dict[str, List[str]] = {}
    for entry in load_config('service_categories', config_dir).get('categories', []):
        name = entry.get('name')
        if not name:
            raise ValueError(f"Service category without a name: {entry!r}")
        taxonomy[name] = [str(keyword).lower() for keyword in entry.get('keywords', [])]
    return taxonomy
