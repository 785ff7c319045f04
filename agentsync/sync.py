#!/usr/bin/env python3
"""
Template Sync Engine

Renders one template per target and writes the result to each target's
destination. Writes are idempotent (identical content is left alone),
refuse to clobber differing files unless overwriting is enabled, keep a
numbered backup of whatever they replace and never leave a half-written
destination behind.
"""

import os
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .common import format_report_line, run_timestamp, status_for
from .config import Configuration, Target, resolve_path
from .errors import (
    AgentSyncError,
    BackupExhaustionError,
    NoEnabledTargetsError,
    OverwriteRefusalError,
    TemplateError,
)
from .render import TemplateRenderer


MAX_BACKUP_ATTEMPTS = 999


@dataclass
class TargetResult:
    """Outcome of syncing a single target."""

    agent_name: str
    dest: str
    status: str
    changed: bool
    backup_path: Optional[str] = None

    def report_line(self) -> str:
        return format_report_line(self.agent_name, self.status, self.dest)


@dataclass
class SyncReport:
    """Outcome of a whole run, results in target declaration order."""

    results: List[TargetResult] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(r.changed for r in self.results)


def read_template(template_path: str) -> str:
    """
    Read the template file.

    Args:
        template_path: Absolute path of the template

    Returns:
        Template text
    """
    try:
        with open(template_path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateError(f"Failed to read template {template_path}: {e}") from e


def read_if_exists(path: str) -> Optional[bytes]:
    """Return the file's bytes, or None when it does not exist."""
    if not os.path.exists(path):
        return None
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise AgentSyncError(f"Failed to read existing file {path}: {e}") from e


def unique_backup_path(dest: str, suffix: str) -> str:
    """
    Find an unused backup filename for ``dest``.

    Tries ``<dest><suffix>``, then ``<dest><suffix>.1`` up to
    ``<dest><suffix>.999``.

    Args:
        dest: File about to be overwritten
        suffix: Backup suffix, e.g. ``.bak``

    Returns:
        First candidate path that does not exist yet
    """
    base = f"{dest}{suffix}"
    if not os.path.exists(base):
        return base
    for i in range(1, MAX_BACKUP_ATTEMPTS + 1):
        candidate = f"{base}.{i}"
        if not os.path.exists(candidate):
            return candidate
    raise BackupExhaustionError(f"Too many backup files for {dest}")


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def atomic_write(dest: str, content: bytes) -> None:
    """
    Replace ``dest`` with ``content`` in one step.

    The data is staged in a temporary file next to the destination and
    renamed over it, so readers see either the old or the new file.
    """
    directory = os.path.dirname(dest)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{os.path.basename(dest)}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if os.path.exists(dest):
            shutil.copymode(dest, tmp_path)
        else:
            os.chmod(tmp_path, _default_file_mode())
        os.replace(tmp_path, dest)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class TemplateSync:
    """Class for rendering and writing a template to every configured target."""

    def __init__(self, config: Configuration, template_path: str,
                 renderer: Optional[TemplateRenderer] = None):
        """
        Initialize the TemplateSync engine.

        Args:
            config: Validated configuration
            template_path: Absolute path of the template being rendered
            renderer: Renderer to use (defaults to one rooted at the
                template directory and the config directory)
        """
        self.config = config
        self.template_path = template_path
        self.renderer = renderer or TemplateRenderer(
            [os.path.dirname(template_path), config.base_dir]
        )

    def resolve_destination(self, target: Target) -> str:
        return resolve_path(target.raw_path, self.config.base_dir)

    def build_variables(self, target: Target, dest: str, timestamp: str) -> Dict[str, str]:
        """
        Build the variables a target is rendered with.

        Built-ins come first and the target's own variables override them.

        Args:
            target: Target being rendered
            dest: Resolved destination path
            timestamp: Run-wide timestamp

        Returns:
            Dict of variable name to value
        """
        variables = {
            "AGENT_NAME": target.agent_name,
            "TARGET_PATH": dest,
            "TEMPLATE_PATH": self.template_path,
            "RUN_TIMESTAMP": timestamp,
        }
        variables.update(target.variables)
        return variables

    def write_if_changed(self, dest: str, content: str, simulate: bool = False):
        """
        Write ``content`` to ``dest`` unless it is already there.

        Args:
            dest: Absolute destination path
            content: Rendered text
            simulate: Decide only, never touch the filesystem

        Returns:
            Tuple of (changed, backup_path). backup_path is None when no
            backup was taken.
        """
        options = self.config.options
        data = content.encode("utf-8")
        existing = read_if_exists(dest)
        if existing == data:
            return False, None

        if existing is not None and not options.overwrite:
            raise OverwriteRefusalError(
                f"Refusing to overwrite existing file (set options.overwrite=true): {dest}"
            )

        if simulate:
            return True, None

        backup_path = None
        try:
            if existing is not None and options.backup:
                backup_path = unique_backup_path(dest, options.backup_suffix)
                shutil.copy2(dest, backup_path)
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            atomic_write(dest, data)
        except OSError as e:
            raise AgentSyncError(f"Failed to write {dest}: {e}") from e

        return True, backup_path

    def sync_target(self, target: Target, template_text: str, timestamp: str,
                    simulate: bool = False, strict: bool = False) -> TargetResult:
        """
        Render and write a single target.

        Args:
            target: Target to sync
            template_text: Template source
            timestamp: Run-wide timestamp
            simulate: Dry-run/check mode
            strict: Fail on undefined template variables

        Returns:
            TargetResult describing what happened
        """
        dest = self.resolve_destination(target)
        variables = self.build_variables(target, dest, timestamp)
        rendered = self.renderer.render(template_text, variables, strict)
        changed, backup_path = self.write_if_changed(dest, rendered, simulate)
        return TargetResult(
            agent_name=target.agent_name,
            dest=dest,
            status=status_for(changed, simulate),
            changed=changed,
            backup_path=backup_path,
        )

    def sync(self, template_text: str, dry_run: bool = False, check: bool = False,
             strict: bool = False, timestamp: Optional[str] = None,
             report: Optional[Callable[[TargetResult], None]] = None) -> SyncReport:
        """
        Sync every enabled target, one after another, in declaration order.

        The first error aborts the run; targets already written stay written.

        Args:
            template_text: Template source
            dry_run: Report would-be changes without writing
            check: Same as dry_run; the caller turns pending changes into failure
            strict: Fail on undefined template variables
            timestamp: RUN_TIMESTAMP value (defaults to now, UTC)
            report: Called with each TargetResult as soon as it is known

        Returns:
            SyncReport for the run
        """
        targets = self.config.enabled_targets
        if not targets:
            raise NoEnabledTargetsError(
                "No enabled targets. Set `enabled: true` for at least one entry in `targets`."
            )

        if timestamp is None:
            timestamp = run_timestamp()
        simulate = dry_run or check

        summary = SyncReport()
        for target in targets:
            result = self.sync_target(target, template_text, timestamp, simulate, strict)
            summary.results.append(result)
            if report is not None:
                report(result)
        return summary
