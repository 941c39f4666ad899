"""Planning of rules into ordered homogeneous batches."""

import logging
from pathlib import Path
from typing import Optional

from ..exceptions import ValidationError
from ..models import ActionKind, Batch, Rule, TransferItem
from ..utils import (
    ALLOWED_PUT_PARAMS,
    gzip_rename,
    is_gzip_source,
    join_key,
    normalize_prefix,
    resolve_content_type,
    unixify_path,
)
from .options import TaskOptions, invalid_params

logger = logging.getLogger(__name__)


class TaskPlanner:
    """Validates rules and groups them into batches.

    Consecutive upload rules share one batch whose items are the concrete
    source files. Every other rule forms a batch of its own. Batches keep
    the order of their first rule.

    Examples:
        >>> planner = TaskPlanner(TaskOptions())
        >>> batches = planner.plan(rules)
        >>> [batch.kind for batch in batches]
    """

    def __init__(self, options: Optional[TaskOptions] = None):
        self.options = options or TaskOptions()

    def plan(self, rules: list[Rule]) -> list[Batch]:
        """Turn rules into ordered batches.

        Args:
            rules: Rules in declaration order

        Returns:
            List of batches

        Raises:
            ValidationError: If a rule is malformed
        """
        batches: list[Batch] = []
        pending: Optional[Batch] = None

        for rule in rules:
            self.validate(rule)
            if rule.action == ActionKind.UPLOAD:
                if pending is None:
                    pending = Batch(kind=ActionKind.UPLOAD)
                    batches.append(pending)
                pending.rules.append(rule)
                pending.items.extend(self.upload_items(rule))
            else:
                pending = None
                batches.append(Batch(kind=rule.action, rules=[rule]))

        logger.debug(
            "Planned %d batch(es) from %d rule(s): %s",
            len(batches),
            len(rules),
            ", ".join(batch.kind.value for batch in batches),
        )
        return batches

    def validate(self, rule: Rule) -> None:
        """Check a single rule.

        Raises:
            ValidationError: If the rule is malformed
        """
        try:
            action = ActionKind(rule.action)
        except ValueError:
            raise ValidationError(f"Unknown action: {rule.action!r}") from None

        if action == ActionKind.DELETE:
            if not rule.dest:
                raise ValidationError(
                    'No "dest" specified for deletion. No need to specify a "src"'
                )
            if self.options.resolve(rule).differential and not rule.cwd:
                raise ValidationError(
                    'A differential delete needs a "cwd" to compare against'
                )
        elif action == ActionKind.DOWNLOAD:
            if rule.expand:
                raise ValidationError('You cannot expand the "src" for a download')
            if not rule.dest:
                raise ValidationError('No "dest" specified for download')
            if not rule.cwd or rule.src:
                raise ValidationError('Specify a "cwd" but not a "src"')
        elif action == ActionKind.COPY:
            if not rule.dest:
                raise ValidationError('No "dest" specified for copy')
            if len(rule.src) != 1:
                raise ValidationError('Specify exactly one "src" prefix for copy')
            if rule.cwd or rule.expand:
                raise ValidationError('A copy takes neither "cwd" nor "expand"')
        elif not rule.dest:
            raise ValidationError('No "dest" specified for upload')

    def upload_items(self, rule: Rule) -> list[TransferItem]:
        """Build the transfer items of an upload rule.

        Rules with parameters outside the put allow-list contribute no
        items. Directory sources are skipped.
        """
        unknown = invalid_params(rule.params)
        if unknown:
            logger.warning(
                '"params" can only be %s (unknown: %s); skipping %s',
                ", ".join(sorted(ALLOWED_PUT_PARAMS)),
                ", ".join(unknown),
                rule,
            )
            return []

        settings = self.options.resolve(rule)
        dest = normalize_prefix(rule.dest)
        items: list[TransferItem] = []

        for src in rule.src:
            local_path = Path(rule.cwd, src) if rule.cwd else Path(src)
            if local_path.is_dir():
                logger.debug(f"Skipping directory source {local_path}")
                continue

            key = self.destination_key(dest, src, rule.expand)
            if not key:
                logger.debug(f"Skipping {src}: destination is the store root")
                continue

            params = dict(settings.params)
            if self.options.gzip_rename and is_gzip_source(src):
                key = gzip_rename(key, self.options.gzip_rename)
                params["ContentEncoding"] = "gzip"
            params["ContentType"] = resolve_content_type(
                key,
                src=src,
                params=params,
                mime_map=self.options.mime,
                default=self.options.mime_default,
            )

            items.append(
                TransferItem(
                    key=key,
                    local_path=local_path,
                    params=params,
                    differential=settings.differential,
                    stream=settings.stream,
                )
            )
        return items

    @staticmethod
    def destination_key(dest: str, src: str, expanded: bool) -> str:
        """Compute the destination key of one upload source.

        Returns an empty string when no key can be formed.
        """
        if not expanded and (dest == "" or dest.endswith("/")):
            return join_key(dest, src)
        key = join_key(dest, "")
        if key == "." or not key:
            return ""
        return unixify_path(key)
