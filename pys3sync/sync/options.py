"""Task options and their composition with per-rule overrides."""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional

from ..exceptions import ValidationError
from ..models import ActionKind, Rule
from ..utils import (
    ALLOWED_PUT_PARAMS,
    DEFAULT_LIST_PAGE_SIZE,
    DEFAULT_MIME_TYPE,
    GZIP_RENAME_POLICIES,
)


PROGRESS_STYLES = ("dots", "progressBar", "none")

# Task-file option names mapped to TaskOptions fields
OPTION_ALIASES: dict[str, str] = {
    "bucket": "bucket",
    "region": "region",
    "endpoint": "endpoint_url",
    "endpointUrl": "endpoint_url",
    "access": "access",
    "concurrency": "concurrency",
    "uploadConcurrency": "upload_concurrency",
    "downloadConcurrency": "download_concurrency",
    "copyConcurrency": "copy_concurrency",
    "mime": "mime",
    "mimeDefault": "mime_default",
    "params": "params",
    "debug": "debug",
    "differential": "differential",
    "displayChangesOnly": "display_changes_only",
    "progress": "progress",
    "overwrite": "overwrite",
    "gzipRename": "gzip_rename",
    "stream": "stream",
    "mock": "mock",
    "listPageSize": "list_page_size",
}


@dataclass(frozen=True)
class TaskOptions:
    """Global options of a run.

    Instances are immutable; use :meth:`replace` to derive a new set of
    options and :meth:`resolve` to compose them with a rule.
    """

    bucket: Optional[str] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    access: Optional[str] = "public-read"
    concurrency: int = 1
    upload_concurrency: Optional[int] = None
    download_concurrency: int = 1
    copy_concurrency: int = 1
    mime: dict[str, str] = field(default_factory=dict)
    mime_default: str = DEFAULT_MIME_TYPE
    params: dict[str, Any] = field(default_factory=dict)
    debug: bool = False
    differential: bool = False
    display_changes_only: bool = False
    progress: str = "dots"
    overwrite: bool = True
    gzip_rename: Optional[str] = None
    stream: bool = False
    mock: bool = False
    list_page_size: int = DEFAULT_LIST_PAGE_SIZE

    def __post_init__(self) -> None:
        for name in (
            "concurrency",
            "download_concurrency",
            "copy_concurrency",
            "list_page_size",
        ):
            value = getattr(self, name)
            if not _is_positive_int(value):
                raise ValidationError(f'"{name}" must be a positive integer, got {value!r}')
        if self.upload_concurrency is not None and (
            not _is_positive_int(self.upload_concurrency)
        ):
            raise ValidationError(
                f'"upload_concurrency" must be a positive integer, '
                f"got {self.upload_concurrency!r}"
            )
        if self.progress not in PROGRESS_STYLES:
            raise ValidationError(
                f'"progress" can only be {", ".join(PROGRESS_STYLES)}, got {self.progress!r}'
            )
        if self.gzip_rename is not None and self.gzip_rename not in GZIP_RENAME_POLICIES:
            raise ValidationError(
                f'"gzip_rename" can only be {", ".join(GZIP_RENAME_POLICIES)}, '
                f"got {self.gzip_rename!r}"
            )
        unknown = invalid_params(self.params)
        if unknown:
            raise ValidationError(
                f'"params" can only be {", ".join(sorted(ALLOWED_PUT_PARAMS))} '
                f"(unknown: {', '.join(unknown)})"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskOptions":
        """Create options from a task-file ``options`` mapping.

        Accepts both the camelCase task-file names and field names.

        Raises:
            ValidationError: If an option is unknown or has an invalid value
        """
        field_names = {f.name for f in dataclasses.fields(cls)}
        values: dict[str, Any] = {}
        for name, value in data.items():
            target = OPTION_ALIASES.get(name, name)
            if target not in field_names:
                raise ValidationError(f"Unknown option: {name}")
            values[target] = value
        if values.get("gzip_rename") == "":
            values["gzip_rename"] = None
        return cls(**values)

    def replace(self, **changes: Any) -> "TaskOptions":
        """Return a copy with some options changed."""
        return dataclasses.replace(self, **changes)

    def concurrency_for(self, kind: ActionKind) -> int:
        """Worker pool size of a batch of the given kind."""
        if kind == ActionKind.UPLOAD:
            return self.upload_concurrency or self.concurrency
        if kind == ActionKind.DOWNLOAD:
            return self.download_concurrency
        if kind == ActionKind.COPY:
            return self.copy_concurrency
        return 1

    def base_params(self) -> dict[str, Any]:
        """Global put parameters, the ACL from ``access`` included."""
        params: dict[str, Any] = {}
        if self.access:
            params["ACL"] = self.access
        params.update(self.params)
        return params

    def resolve(self, rule: Rule) -> "RuleSettings":
        """Compose the rule's overrides with these options."""
        params = self.base_params()
        params.update(rule.params)
        return RuleSettings(
            differential=(
                rule.differential if rule.differential is not None else self.differential
            ),
            stream=rule.stream if rule.stream is not None else self.stream,
            exclude=rule.exclude,
            flip_exclude=rule.flip_exclude,
            params=params,
        )


@dataclass(frozen=True)
class RuleSettings:
    """Effective settings of one rule (rule > global)."""

    differential: bool = False
    stream: bool = False
    exclude: Optional[str] = None
    flip_exclude: bool = False
    params: dict[str, Any] = field(default_factory=dict)


def invalid_params(params: dict[str, Any]) -> list[str]:
    """Return the parameter names outside the put allow-list."""
    return sorted(key for key in params if key not in ALLOWED_PUT_PARAMS)


def _is_positive_int(value: Any) -> bool:
    # bool is an int subclass
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1
