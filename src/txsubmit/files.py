"""
YAML/JSON document helpers.

Files ending in ``.json`` are read and written as JSON; everything else is
YAML.
"""

import json
from pathlib import Path
from typing import Any, Union

import yaml

PathLike = Union[str, Path]


def is_json_path(path: PathLike) -> bool:
    return Path(path).suffix.lower() == ".json"


def read_yaml_or_json(path: PathLike) -> Any:
    """
    Load a document from disk.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        if is_json_path(path):
            return json.load(f)
        return yaml.safe_load(f)


def write_yaml_or_json(path: PathLike, data: Any) -> None:
    """Write a document, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        if is_json_path(path):
            json.dump(data, f, indent=2)
            f.write("\n")
        else:
            yaml.safe_dump(data, f, sort_keys=False)
