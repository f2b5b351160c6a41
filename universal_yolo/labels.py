from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Union

import yaml

from .errors import LabelSourceError


PathLike = Union[str, Path]


class ClassMapping(Mapping[int, str]):
    """
    Read-only class id -> name table.

    `name_for` never fails: ids without an entry resolve to "Class_<id>".
    """

    def __init__(self, names: Mapping[int, str]):
        self._names: Mapping[int, str] = MappingProxyType({int(k): str(v) for k, v in names.items()})

    def __getitem__(self, class_id: int) -> str:
        return self._names[class_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"ClassMapping({dict(self._names)!r})"

    def name_for(self, class_id: int) -> str:
        name = self._names.get(int(class_id))
        if name is None:
            return f"Class_{int(class_id)}"
        return name


def _parse_id(value: Any, where: str) -> int:
    if isinstance(value, bool):
        raise LabelSourceError(f"{where}: class id must be an integer, got {value!r}")
    if isinstance(value, int):
        class_id = value
    elif isinstance(value, str) and value.strip().isdigit():
        class_id = int(value.strip())
    else:
        raise LabelSourceError(f"{where}: class id must be an integer, got {value!r}")
    if class_id < 0:
        raise LabelSourceError(f"{where}: class id must be >= 0, got {class_id}")
    return class_id


def _parse_classes(records: Any, source: str) -> Dict[int, str]:
    if not isinstance(records, list):
        raise LabelSourceError(f"{source}: 'classes' must be a list of {{id, name}} records")
    names: Dict[int, str] = {}
    for idx, rec in enumerate(records):
        where = f"{source}: classes[{idx}]"
        if not isinstance(rec, dict):
            raise LabelSourceError(f"{where} must be a mapping with 'id' and 'name'")
        # Accept both `id`/`name` and the capitalized keys some exporters write.
        lowered = {str(k).lower(): v for k, v in rec.items()}
        if "id" not in lowered or "name" not in lowered:
            raise LabelSourceError(f"{where} must have 'id' and 'name'")
        class_id = _parse_id(lowered["id"], where)
        if class_id in names:
            raise LabelSourceError(f"{where}: duplicate class id {class_id}")
        names[class_id] = str(lowered["name"])
    return names


def _parse_names(value: Any, source: str) -> Dict[int, str]:
    # Ultralytics metadata: `names: {0: person, ...}` or `names: [person, ...]`
    if isinstance(value, list):
        return {i: str(name) for i, name in enumerate(value)}
    if isinstance(value, dict):
        return {_parse_id(k, f"{source}: names"): str(v) for k, v in value.items()}
    raise LabelSourceError(f"{source}: 'names' must be a list or a mapping")


def parse_class_mapping(payload: Any, source: str = "<labels>") -> ClassMapping:
    if not isinstance(payload, dict):
        raise LabelSourceError(f"{source}: label file must contain a mapping at the top level")
    lowered = {str(k).lower(): v for k, v in payload.items()}
    if "classes" in lowered:
        return ClassMapping(_parse_classes(lowered["classes"], source))
    if "names" in lowered:
        return ClassMapping(_parse_names(lowered["names"], source))
    raise LabelSourceError(f"{source}: expected a 'classes' or 'names' key")


def load_class_mapping(path: PathLike) -> ClassMapping:
    """
    Load class names from a YAML label file.

    The primary format is a list of records:

        classes:
          - id: 0
            name: person
          - id: 1
            name: bicycle

    Ultralytics `metadata.yaml` style (`names: {0: person}` or a plain list) is accepted too.
    """

    p = Path(path)
    if not p.is_file():
        raise LabelSourceError(f"Label file not found: {p}")
    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise LabelSourceError(f"Invalid label YAML: {p}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LabelSourceError(f"Could not read label file: {p}") from exc
    return parse_class_mapping(payload, source=str(p))
