"""Reading and rewriting project descriptor files.

hvigor descriptors are JSON5 (JSON with comments and trailing commas). They
are decoded with ``json5`` and written back as indented JSON, which hvigor
accepts, keeping every key the tool did not touch.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, TypeVar

import json5
import yaml
from pydantic import BaseModel, ValidationError

from ohkit.shared.exceptions import DescriptorError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def read_json5(path: str | Path) -> dict[str, Any]:
    """Decode a JSON5 descriptor into a mapping.

    Raises:
        DescriptorError: If the file cannot be read or is not a JSON5 object.
    """
    try:
        data = json5.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise DescriptorError(str(path), str(exc)) from exc
    if not isinstance(data, dict):
        raise DescriptorError(str(path), "top-level value must be an object")
    return data


def parse_model(path: str | Path, model: type[ModelT], data: Any) -> ModelT:
    """Validate part of a decoded descriptor into ``model``."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise DescriptorError(str(path), str(exc)) from exc


def write_json(path: str | Path, data: dict[str, Any]) -> None:
    Path(path).write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


class PropertiesFile:
    """``key=value`` settings file such as ``local.properties``."""

    def __init__(self, values: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(values or {})

    @classmethod
    def parse(cls, text: str) -> PropertiesFile:
        values: dict[str, str] = {}
        for raw in text.splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                continue
            values[key.strip()] = value.strip()
        return cls(values)

    @classmethod
    def from_file(cls, path: str | Path) -> PropertiesFile:
        return cls.parse(Path(path).read_text(encoding="utf-8"))

    def write(self, path: str | Path) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("".join(f"{key}={value}\n" for key, value in self.values.items()), encoding="utf-8")


def read_pubspec_version(path: str | Path) -> tuple[str | None, str | None]:
    """Return ``(build_name, build_number)`` from a pubspec ``version: 1.2.3+4``."""
    pubspec = Path(path)
    if not pubspec.is_file():
        return None, None
    try:
        data = yaml.safe_load(pubspec.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise DescriptorError(str(pubspec), str(exc)) from exc
    version = data.get("version") if isinstance(data, dict) else None
    if version is None:
        return None, None
    name, _, number = str(version).partition("+")
    return (name or None), (number or None)
