"""CLI interface for pys3sync."""

import json as jsonlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import click

from .config import config
from .exceptions import S3SyncError
from .models import BatchResult, ItemStatus, RunResult
from .output import OutputFormatter
from .store import create_client
from .sync import ReportCollector, RemoteLister, TransferEngine, load_task_file
from .utils import normalize_prefix

logger = logging.getLogger(__name__)

BATCH_TITLES = {
    "upload": "Uploading to",
    "download": "Downloading from",
    "delete": "Deleting from",
    "copy": "Copying",
}

BATCH_VERBS = {
    "upload": "uploaded",
    "download": "downloaded",
    "delete": "deleted",
    "copy": "copied",
}


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pys3sync")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """pys3sync - Run declarative file transfers between local files and S3."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pys3sync").setLevel(logging.DEBUG)
        # boto3 is very chatty at debug level
        logging.getLogger("botocore").setLevel(logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--access-key-id", prompt="AWS access key id", help="Access key id")
@click.option(
    "--secret-access-key",
    prompt="AWS secret access key",
    hide_input=True,
    help="Secret access key",
)
@click.option("--region", prompt="Region", default="", help="Bucket region")
@click.option("--bucket", prompt="Default bucket", default="", help="Default bucket")
@click.option("--endpoint-url", default="", help="Endpoint of an S3-compatible store")
@click.pass_context
def init(
    ctx: Any,
    access_key_id: str,
    secret_access_key: str,
    region: str,
    bucket: str,
    endpoint_url: str,
) -> None:
    """Initialize pys3sync configuration.

    Stores credentials and defaults in ~/.config/pys3sync/config.json.
    Environment variables still take precedence.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        config.save(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            region=region or None,
            bucket=bucket or None,
            endpoint_url=endpoint_url or None,
        )
    except (S3SyncError, OSError) as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command()
@click.argument("taskfile", type=click.Path(exists=True, dir_okay=False))
@click.option("--task", "-t", help="Task to run when the file declares several")
@click.option("--bucket", "-b", help="Bucket (overrides the task file)")
@click.option("--region", help="Region (overrides the task file)")
@click.option("--endpoint-url", help="Endpoint of an S3-compatible store")
@click.option(
    "--mock",
    is_flag=True,
    help="Treat the bucket as a local directory instead of an S3 bucket",
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would be transferred without doing it"
)
@click.option(
    "--progress",
    type=click.Choice(["dots", "progressBar", "none"]),
    default=None,
    help="Progress display (overrides the task file)",
)
@click.option(
    "--changed-files",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the list of changed keys to this JSON file",
)
@click.pass_context
def run(
    ctx: Any,
    taskfile: str,
    task: Optional[str],
    bucket: Optional[str],
    region: Optional[str],
    endpoint_url: Optional[str],
    mock: bool,
    dry_run: bool,
    progress: Optional[str],
    changed_files: Optional[str],
) -> None:
    """Run the rules of a task file.

    TASKFILE: JSON file with "options" and "files" (or named "tasks")
    """
    from .cli_progress import create_progress_display

    out: OutputFormatter = ctx.obj["out"]

    try:
        options, rules = load_task_file(taskfile, task)
        overrides: dict[str, Any] = {}
        if bucket:
            overrides["bucket"] = bucket
        if region:
            overrides["region"] = region
        if endpoint_url:
            overrides["endpoint_url"] = endpoint_url
        if mock:
            overrides["mock"] = True
        if dry_run:
            overrides["debug"] = True
        if progress:
            overrides["progress"] = progress
        if out.json_output or out.quiet:
            overrides["progress"] = "none"
        options = options.replace(**overrides)

        if options.mock and options.bucket and not Path(options.bucket).is_absolute():
            options = options.replace(
                bucket=str(Path(taskfile).parent / options.bucket)
            )

        client = create_client(
            bucket=options.bucket,
            mock=options.mock,
            region=options.region,
            endpoint_url=options.endpoint_url,
        )
    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)

    if options.debug:
        out.warning("Dry run: nothing will be transferred")

    reporter = ReportCollector(
        sink=lambda result: _display_batch(out, result, options.display_changes_only)
    )
    display = create_progress_display(options.progress, out.console)

    try:
        with display:
            engine = TransferEngine(
                client,
                options,
                reporter=reporter,
                tracker=display.create_tracker(),
            )
            run_result = engine.run(rules)
    except KeyboardInterrupt:
        out.warning("\nRun cancelled by user")
        ctx.exit(130)
    except S3SyncError as e:
        out.error(str(e))
        if e.result is not None:
            _display_summary(out, e.result, options.debug)
            _write_changed_files(out, changed_files, e.result)
        ctx.exit(1)

    _display_summary(out, run_result, options.debug)
    _write_changed_files(out, changed_files, run_result)


def _display_batch(
    out: OutputFormatter, result: BatchResult, changes_only: bool
) -> None:
    """Render one finished batch."""
    title = BATCH_TITLES[result.kind.value]
    prefix = "[dry run] " if result.dry_run else ""

    if result.total == 0:
        out.info(f"{prefix}{title} {result.target}: nothing to do")
        return

    out.info(
        f"{prefix}{title} {result.target}: "
        f"{result.transferred}/{result.total} {BATCH_VERBS[result.kind.value]}"
    )
    for outcome in result.outcomes:
        if outcome.status == ItemStatus.FAILED:
            out.warning(f"{outcome.key}: {outcome.error}")
        elif outcome.status == ItemStatus.TRANSFERRED:
            out.progress_message(f"  {outcome.key}")
        elif not changes_only:
            reason = f" ({outcome.reason})" if outcome.reason else ""
            out.progress_message(f"  {outcome.key}: {outcome.status.value}{reason}")


def _display_summary(out: OutputFormatter, result: RunResult, dry_run: bool) -> None:
    stats = result.totals()
    if out.json_output:
        out.output_json(
            {
                **stats,
                "dry_run": dry_run,
                "changed_keys": result.changed_keys,
                "error": str(result.error) if result.error else None,
            }
        )
        return

    items = [
        ("Uploaded", f"{stats['uploads']} files"),
        ("Downloaded", f"{stats['downloads']} files"),
        ("Deleted", f"{stats['deletes']} objects"),
        ("Copied", f"{stats['copies']} objects"),
    ]
    if stats["skips"]:
        items.append(("Skipped", f"{stats['skips']} unchanged"))
    if stats["excluded"]:
        items.append(("Excluded", f"{stats['excluded']}"))
    if stats["failures"]:
        items.append(("Failed", f"{stats['failures']}"))
    title = "Dry Run Complete" if dry_run else "Run Complete"
    if not result.ok:
        title = "Run Aborted"
    out.print_summary(title, items)


def _write_changed_files(
    out: OutputFormatter, path: Optional[str], result: RunResult
) -> None:
    if not path:
        return
    try:
        Path(path).write_text(jsonlib.dumps(result.changed_keys, indent=2) + "\n")
    except OSError as e:
        out.error(f"Cannot write {path}: {e}")
        return
    out.info(f"Changed keys written to {path}")


@main.command(name="ls")
@click.argument("prefix", default="")
@click.option("--bucket", "-b", help="Bucket (uses config if not provided)")
@click.option("--region", help="Region (uses config if not provided)")
@click.option("--endpoint-url", help="Endpoint of an S3-compatible store")
@click.option("--mock", is_flag=True, help="Treat the bucket as a local directory")
@click.pass_context
def ls(
    ctx: Any,
    prefix: str,
    bucket: Optional[str],
    region: Optional[str],
    endpoint_url: Optional[str],
    mock: bool,
) -> None:
    """List the objects under a prefix.

    PREFIX: Key prefix, "/" or empty for the whole bucket
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = create_client(
            bucket=bucket,
            mock=mock,
            region=region,
            endpoint_url=endpoint_url,
            create=False,
        )
        records = RemoteLister(client).list(normalize_prefix(prefix))
    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)

    rows = [
        {
            "key": record.key,
            "size": out.format_size(record.size),
            "modified": (
                datetime.fromtimestamp(record.last_modified).strftime("%Y-%m-%d %H:%M:%S")
                if record.last_modified is not None
                else ""
            ),
        }
        for record in sorted(records.values(), key=lambda r: r.key)
    ]
    if not rows:
        out.info(f"No objects under {client.describe(normalize_prefix(prefix))}")
        return
    out.output_table(
        rows,
        ["key", "size", "modified"],
        {"key": "Key", "size": "Size", "modified": "Last modified"},
    )


if __name__ == "__main__":
    main()
