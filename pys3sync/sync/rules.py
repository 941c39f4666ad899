"""Loading of JSON task files into options and rules.

A task file holds global ``options`` and an ordered list of ``files``
entries, or several named ``tasks`` each with their own options and files::

    {
        "options": {"bucket": "my-bucket", "differential": true},
        "files": [
            {"expand": true, "cwd": "dist/", "src": ["**"], "dest": "app/"},
            {"action": "download", "cwd": "backup/", "dest": "app/"},
            {"action": "delete", "dest": "tmp/"}
        ]
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from ..exceptions import S3SyncConfigError, ValidationError
from ..models import ActionKind, Rule
from ..utils import glob_match, is_glob_pattern, join_key, unixify_path
from .options import TaskOptions
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)

# Task-file entry names mapped to Rule fields
ENTRY_KEYS: dict[str, str] = {
    "action": "action",
    "src": "src",
    "dest": "dest",
    "cwd": "cwd",
    "expand": "expand",
    "differential": "differential",
    "exclude": "exclude",
    "flipExclude": "flip_exclude",
    "stream": "stream",
    "params": "params",
}


def load_task_file(
    path: Union[str, Path], task: Optional[str] = None
) -> tuple[TaskOptions, list[Rule]]:
    """Load a task file.

    Relative ``cwd`` and ``src`` paths are resolved against the directory
    of the task file.

    Args:
        path: JSON task file
        task: Name of the task to load when the file declares ``tasks``

    Returns:
        Tuple of (options, rules in declaration order)

    Raises:
        S3SyncConfigError: If the file cannot be read or parsed
        ValidationError: If the task, its options or an entry is invalid
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise S3SyncConfigError(f"Cannot read task file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise S3SyncConfigError(f"Invalid JSON in task file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError(f"Task file {path} must contain a JSON object")

    options_data = dict(data.get("options") or {})
    tasks = data.get("tasks")
    if tasks is not None:
        if not isinstance(tasks, dict) or not tasks:
            raise ValidationError('"tasks" must be a non-empty object')
        if task is None:
            if len(tasks) > 1:
                raise ValidationError(
                    f"Task file declares several tasks, choose one of: "
                    f"{', '.join(sorted(tasks))}"
                )
            task = next(iter(tasks))
        if task not in tasks:
            raise ValidationError(f"Unknown task: {task}")
        task_data = tasks[task]
        options_data.update(task_data.get("options") or {})
        entries = task_data.get("files") or []
    else:
        if task is not None:
            raise ValidationError(f"Task file {path} declares no tasks (asked for {task})")
        entries = data.get("files") or []

    options = TaskOptions.from_dict(options_data)
    rules = rules_from_dicts(entries, path.parent)
    logger.debug(f"Loaded {len(rules)} rule(s) from {path}")
    return options, rules


def rules_from_dicts(
    entries: list[dict[str, Any]], base_dir: Union[str, Path] = "."
) -> list[Rule]:
    """Turn task-file entries into rules.

    Expanded upload entries produce one rule per matched file, in sorted
    order, each with its own destination key. Other upload entries keep
    all matched files in a single rule.

    Args:
        entries: ``files`` entries of a task file
        base_dir: Directory relative paths are resolved against

    Returns:
        Rules in declaration order
    """
    base_dir = Path(base_dir)
    rules: list[Rule] = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValidationError(f"File entry {position} must be an object")
        unknown = sorted(set(entry) - set(ENTRY_KEYS))
        if unknown:
            raise ValidationError(
                f"File entry {position} has unknown keys: {', '.join(unknown)}"
            )
        values = {ENTRY_KEYS[name]: value for name, value in entry.items()}
        try:
            values["action"] = ActionKind(values.get("action", "upload"))
        except ValueError:
            raise ValidationError(f"Unknown action: {values['action']!r}") from None
        rules.extend(_entry_rules(values, base_dir))
    return rules


def _entry_rules(values: dict[str, Any], base_dir: Path) -> list[Rule]:
    action = values["action"]
    src = values.pop("src", None)
    patterns: list[str] = []
    if src is not None:
        patterns = [src] if isinstance(src, str) else list(src)

    cwd = values.pop("cwd", None)
    cwd_path = base_dir / cwd if cwd else None
    if cwd_path is not None:
        values["cwd"] = str(cwd_path)

    if action == ActionKind.COPY:
        return [Rule(src=tuple(unixify_path(p) for p in patterns), **values)]
    if action != ActionKind.UPLOAD:
        # Validated by the planner, which rejects a "src" here
        return [Rule(src=tuple(patterns), **values)]

    root = cwd_path if cwd_path is not None else base_dir
    files = expand_sources(patterns, root)
    if not files:
        logger.warning(f"No source files matched {patterns} in {root}")

    if not values.get("expand"):
        values["cwd"] = str(root)
        return [Rule(src=tuple(files), **values)]

    dest = values.pop("dest", None) or ""
    return [
        Rule(dest=join_key(dest, file), src=(file,), **values)
        for file in files
    ]


def expand_sources(patterns: list[str], root: Path) -> list[str]:
    """Resolve source patterns to file paths relative to ``root``.

    Glob patterns match files below ``root``; a leading ``!`` removes
    matches of earlier patterns. Plain paths are kept when the file
    exists. The result is sorted and free of duplicates.
    """
    available: Optional[list[str]] = None
    selected: set[str] = set()

    for pattern in patterns:
        negate = pattern.startswith("!")
        pattern = unixify_path(pattern[1:] if negate else pattern)
        if is_glob_pattern(pattern):
            if available is None:
                available = sorted(DirectoryScanner().relative_paths(root))
            matches = {path for path in available if glob_match(pattern, path)}
        else:
            candidate = pattern.rstrip("/")
            matches = {candidate} if (root / candidate).exists() else set()
            if not matches and not negate:
                logger.debug(f"Source {root / candidate} does not exist")

        if negate:
            selected -= matches
        else:
            selected |= matches

    return sorted(selected)
