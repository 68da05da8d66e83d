"""
Dot-path access into player documents.

Update batches address fields with dot paths ("status.medical",
"injuries", "medicalAppointments.apt_1"). Paths are checked against a
registry of known top-level namespaces before they reach the rule
tables, so a typo cannot silently create a new branch of the document.

Namespace kinds:
- object: a nested dict; any key beneath it may be set
- collection: a list of records carrying an "id"; "<ns>.<id>" upserts one record
  (ids are never read as positions, so "injuries.1" means the record "1")
- series: a time-ordered list of snapshots; replaced wholesale, or written
  field by field ("physicalAttributes.weight") which folds into a new snapshot
- scalar: a top-level value with no children
"""

from typing import Any, Dict, Iterable, List, Tuple


OBJECT_NAMESPACES = frozenset({
    "personalDetails",
    "rugbyProfile",
    "status",
    "skills",
    "aiRating",
    "aiAnalysis",
    "playerValue",
    "cohesionMetrics",
    "physicalMetrics",
    "currentMatch",
    "contributionsData",
})

COLLECTION_NAMESPACES = frozenset({
    "injuries",
    "medicalAppointments",
    "trainingAttendance",
    "gpsData",
    "liveMatchData",
    "medicalNotes",
})

SERIES_NAMESPACES = frozenset({
    "physicalAttributes",
    "gameStats",
    "testResults",
})

SCALAR_FIELDS = frozenset({"lastUpdated"})


class PathError(ValueError):
    """A value cannot be placed at the requested path."""


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def split_path(path: str) -> List[str]:
    return path.split(".")


def namespace_of(path: str) -> str:
    """Top-level key a path lives under."""
    return path.split(".", 1)[0]


def is_known_path(path: str) -> bool:
    """Whether a dot path addresses a field the registry knows about."""
    if not path or any(not part for part in split_path(path)):
        return False

    parts = split_path(path)
    namespace = parts[0]

    if namespace in OBJECT_NAMESPACES or namespace in COLLECTION_NAMESPACES:
        return True
    if namespace in SERIES_NAMESPACES:
        return len(parts) <= 2
    if namespace in SCALAR_FIELDS:
        return len(parts) == 1
    return False


def unknown_paths(paths: Iterable[str]) -> List[str]:
    return [path for path in paths if not is_known_path(path)]


# =============================================================================
# READ
# =============================================================================

def _by_index(parts: List[str], depth: int) -> bool:
    """Whether the list at ``parts[:depth]`` may be addressed by position.

    Collection records are addressed by id only; an all-digit id such as
    "3" must never hit the fourth record.
    """
    return not (depth == 1 and parts[0] in COLLECTION_NAMESPACES)


def _list_child(items: list, key: str, by_index: bool = True) -> Any:
    """Element of a list addressed by record id or, where allowed, by index."""
    for item in items:
        if isinstance(item, dict) and str(item.get("id")) == key:
            return item
    if by_index and key.isdigit() and int(key) < len(items):
        return items[int(key)]
    return MISSING


def get_path(obj: Any, path: str, default: Any = MISSING) -> Any:
    """Resolve a dot path through dicts, list indices and record ids."""
    parts = split_path(path)
    current = obj
    for depth, key in enumerate(parts):
        if isinstance(current, dict):
            if key not in current:
                return default
            current = current[key]
        elif isinstance(current, list):
            current = _list_child(current, key, _by_index(parts, depth))
            if current is MISSING:
                return default
        else:
            return default
    return current


def _collect(value: Any, parts: List[str]) -> List[Any]:
    if not parts:
        return [value]
    if isinstance(value, list):
        found = []
        for item in value:
            found.extend(_collect(item, parts))
        return found
    if isinstance(value, dict) and parts[0] in value:
        return _collect(value[parts[0]], parts[1:])
    return []


def resolve_update_values(updates: Dict[str, Any], field: str) -> List[Any]:
    """
    Every value a batch proposes for ``field``.

    Matches the field as a literal key, as a child of a shallower key
    (``{"status": {"medical": ...}}``; list values are searched element
    by element) and, when the batch writes children of the field one by
    one (``skills.passing``), as a dict of those children.
    """
    if field in updates:
        return [updates[field]]

    values: List[Any] = []
    for key, value in updates.items():
        if field.startswith(key + "."):
            values.extend(_collect(value, split_path(field[len(key) + 1:])))

    children = {
        key[len(field) + 1:]: value
        for key, value in updates.items()
        if key.startswith(field + ".")
    }
    if children:
        values.append(children)

    return values


# =============================================================================
# WRITE
# =============================================================================

def _empty_container(parts: List[str], depth: int) -> Any:
    if depth == 0 and (parts[0] in COLLECTION_NAMESPACES or parts[0] in SERIES_NAMESPACES):
        return []
    return {}


def _upsert(items: list, key: str, value: Any, by_index: bool) -> None:
    for index, item in enumerate(items):
        if isinstance(item, dict) and str(item.get("id")) == key:
            items[index] = value
            return
    if by_index and key.isdigit() and int(key) < len(items):
        items[int(key)] = value
        return
    if isinstance(value, dict):
        record = dict(value)
        record.setdefault("id", key)
        items.append(record)
        return
    raise PathError(f"Cannot place a {type(value).__name__} at list key '{key}'")


def set_path(obj: dict, path: str, value: Any) -> None:
    """
    Write ``value`` at ``path`` in place, creating intermediate objects.

    Raises PathError when the path runs through a scalar or into a list
    element that does not exist.
    """
    parts = split_path(path)
    target: Any = obj

    for depth, key in enumerate(parts[:-1]):
        if isinstance(target, dict):
            child = target.get(key)
            if not isinstance(child, (dict, list)):
                child = _empty_container(parts, depth)
                target[key] = child
        elif isinstance(target, list):
            child = _list_child(target, key, _by_index(parts, depth))
            if child is MISSING or not isinstance(child, (dict, list)):
                raise PathError(f"No record '{key}' under '{'.'.join(parts[:depth])}'")
        else:
            raise PathError(f"Cannot descend into '{key}' of {path}")
        target = child

    last = parts[-1]
    if isinstance(target, dict):
        target[last] = value
    elif isinstance(target, list):
        _upsert(target, last, value, _by_index(parts, len(parts) - 1))
    else:
        raise PathError(f"Cannot set {path}")


def upsert_record(records: Iterable[dict], record: dict) -> List[dict]:
    """New list with ``record`` replacing the entry of the same id, or appended."""
    result = list(records)
    record_id = record.get("id")
    if record_id is not None:
        for index, existing in enumerate(result):
            if isinstance(existing, dict) and existing.get("id") == record_id:
                result[index] = record
                return result
    result.append(record)
    return result


def fold_series_fields(
    updates: Dict[str, Any],
    document: dict,
    snapshot_date: str,
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Fold single-field series writes into one new snapshot per series.

    ``{"physicalAttributes.weight": 92}`` becomes
    ``{"physicalAttributes": [...existing, {"date": snapshot_date, "weight": 92}]}``.
    Returns the rewritten batch and the series that were folded.
    """
    snapshots: Dict[str, dict] = {}
    folded: Dict[str, Any] = {}

    for key, value in updates.items():
        namespace = namespace_of(key)
        if namespace in SERIES_NAMESPACES and key != namespace:
            snapshots.setdefault(namespace, {})[key[len(namespace) + 1:]] = value
        else:
            folded[key] = value

    for namespace, fields in snapshots.items():
        base = folded.get(namespace)
        if not isinstance(base, list):
            existing = document.get(namespace)
            base = existing if isinstance(existing, list) else []
        snapshot = {"date": snapshot_date}
        snapshot.update(fields)
        folded[namespace] = list(base) + [snapshot]

    return folded, list(snapshots)
