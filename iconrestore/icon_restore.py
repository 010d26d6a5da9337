"""
Icon Restore Engine

Rewrites a bundle's per-file icon override from the bundle's own declared
icon so the Finder stops showing a custom icon:
- Bundle, manifest and icon file validation with classified errors
- A typed pipeline of filesystem and developer-tool steps
- Per-call scratch directories removed on every exit path
- Optional rollback of a half-written override
- Batch restores with a single Finder refresh at the end
"""

import shutil
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .bundle_inspector import (
    MANIFEST_ERRORS,
    MANIFEST_RELPATH,
    RESOURCES_RELPATH,
    normalize_icon_name,
    read_manifest,
)
from .common.logger import get_logger
from .env import get_scratch_dir
from .platform_utils import CommandResult, PlatformUtils

logger = get_logger(__name__)

# Name the Finder looks for inside a folder or bundle; the trailing CR is part of it
MARKER_NAME = 'Icon\r'

# Resource type holding icon data inside the marker's resource fork
ICON_RESOURCE_TYPE = 'icns'

Executor = Callable[..., CommandResult]
Spawner = Callable[[Sequence[str]], bool]
BatchProgress = Callable[[int, int, str], None]


class RestoreErrorKind(Enum):
    """Why a restore could not complete"""
    BUNDLE_NOT_FOUND = 'bundle_not_found'
    MANIFEST_NOT_FOUND = 'manifest_not_found'
    ICON_FILE_NOT_FOUND = 'icon_file_not_found'
    RESTORE_OPERATION_FAILED = 'restore_operation_failed'

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    RestoreErrorKind.BUNDLE_NOT_FOUND: 'Application bundle not found',
    RestoreErrorKind.MANIFEST_NOT_FOUND: 'Info.plist not found or missing an icon entry',
    RestoreErrorKind.ICON_FILE_NOT_FOUND: 'Icon file not found',
    RestoreErrorKind.RESTORE_OPERATION_FAILED: 'Restore operation failed',
}


class RestoreError(Exception):
    """A classified failure for one bundle"""

    def __init__(self, kind: RestoreErrorKind, bundle_path: Union[str, Path],
                 details: Optional[str] = None):
        self.kind = kind
        self.bundle_path = str(bundle_path)
        self.details = details
        message = f"{kind.description}: {self.bundle_path}"
        if details:
            message += f" ({details})"
        super().__init__(message)


@dataclass(frozen=True)
class ToolStep:
    """Invocation of an external utility with explicit arguments"""
    name: str
    argv: Tuple[str, ...]
    stdout_path: Optional[Path] = None
    mutates_bundle: bool = False


@dataclass(frozen=True)
class FileStep:
    """Filesystem operation performed in-process"""
    name: str
    action: Callable[[], None] = field(compare=False)
    mutates_bundle: bool = False


PipelineStep = Union[ToolStep, FileStep]


@dataclass
class RestoreOutcome:
    """Result of restoring one bundle"""
    bundle_path: str
    error: Optional[RestoreError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[RestoreErrorKind]:
        return self.error.kind if self.error else None


@dataclass
class BatchResult:
    """Aggregate of a batch restore"""
    outcomes: List[RestoreOutcome] = field(default_factory=list)
    refreshed: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failure_count(self) -> int:
        return len(self.outcomes) - self.success_count

    @property
    def failures(self) -> List[RestoreOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    def failures_by_kind(self) -> Dict[RestoreErrorKind, int]:
        counts: Dict[RestoreErrorKind, int] = {}
        for outcome in self.failures:
            counts[outcome.kind] = counts.get(outcome.kind, 0) + 1
        return counts


def resolve_icon_file(bundle_path: Union[str, Path]) -> Path:
    """
    Locate the icon file a bundle declares; nothing is written

    Raises:
        RestoreError: BUNDLE_NOT_FOUND, MANIFEST_NOT_FOUND or ICON_FILE_NOT_FOUND
    """
    bundle = Path(bundle_path)
    contents = bundle / 'Contents'
    manifest_path = bundle / MANIFEST_RELPATH

    if not contents.exists():
        raise RestoreError(RestoreErrorKind.BUNDLE_NOT_FOUND, bundle)

    if not manifest_path.exists():
        raise RestoreError(RestoreErrorKind.MANIFEST_NOT_FOUND, bundle)

    try:
        manifest = read_manifest(bundle)
    except MANIFEST_ERRORS as e:
        raise RestoreError(RestoreErrorKind.MANIFEST_NOT_FOUND, bundle, f"unparsable manifest: {e}")

    icon_name = manifest.get('CFBundleIconFile')
    if not isinstance(icon_name, str) or not icon_name:
        raise RestoreError(RestoreErrorKind.MANIFEST_NOT_FOUND, bundle, "no CFBundleIconFile entry")

    icon_file = bundle / RESOURCES_RELPATH / normalize_icon_name(icon_name)
    if not icon_file.exists():
        raise RestoreError(RestoreErrorKind.ICON_FILE_NOT_FOUND, bundle, str(icon_file))

    return icon_file


def _remove_if_present(path: Path) -> None:
    if path.exists() or path.is_symlink():
        path.unlink()


def build_pipeline(icon_file: Path, bundle: Path, workdir: Path,
                   programs: Optional[Dict[str, str]] = None) -> List[PipelineStep]:
    """
    Ordered steps that write a fresh icon override for a bundle

    The bundle's custom-icon flag is set before the marker file is created
    and filled, and the marker is hidden last.

    Args:
        icon_file: The bundle's declared .icns file
        bundle: Bundle root
        workdir: Scratch directory owned by the caller
        programs: Tool name to executable overrides

    Returns:
        List of ToolStep and FileStep in execution order
    """
    programs = programs or {}

    def program(name: str) -> str:
        return programs.get(name, name)

    scratch_icon = workdir / 'icon.icns'
    scratch_rsrc = workdir / 'icon.rsrc'
    marker = bundle / MARKER_NAME

    return [
        FileStep('copy-icon', lambda: shutil.copyfile(icon_file, scratch_icon)),
        ToolStep('normalize-icon', (program('sips'), '-i', str(scratch_icon))),
        ToolStep('extract-resource',
                 (program('DeRez'), '-only', ICON_RESOURCE_TYPE, str(scratch_icon)),
                 stdout_path=scratch_rsrc),
        FileStep('remove-stale-marker', lambda: _remove_if_present(marker), mutates_bundle=True),
        ToolStep('set-custom-icon-flag', (program('SetFile'), '-a', 'C', str(bundle)),
                 mutates_bundle=True),
        FileStep('create-marker', marker.touch, mutates_bundle=True),
        ToolStep('append-resource',
                 (program('Rez'), '-append', str(scratch_rsrc), '-o', str(marker)),
                 mutates_bundle=True),
        ToolStep('hide-marker', (program('SetFile'), '-a', 'V', str(marker)),
                 mutates_bundle=True),
    ]


def build_refresh_script(quit_delay: float = 2, activate_delay: float = 1) -> List[str]:
    """AppleScript lines that restart the Finder so it drops cached icons"""
    return [
        'tell application "Finder" to quit',
        f'delay {quit_delay}',
        'tell application "Finder" to activate',
        f'delay {activate_delay}',
        'do shell script "killall Finder"',
    ]


class IconRestoreEngine:
    """Restores the default icon of application bundles"""

    def __init__(self, executor: Optional[Executor] = None,
                 scratch_dir: Optional[Union[str, Path]] = None,
                 timeout: Optional[float] = None,
                 rollback_on_failure: bool = True,
                 programs: Optional[Dict[str, str]] = None,
                 spawner: Optional[Spawner] = None,
                 refresh_delays: Tuple[float, float] = (2, 1)):
        """
        Args:
            executor: Runs a ToolStep; called as executor(argv, timeout=, stdout_path=)
            scratch_dir: Parent of the per-call scratch directories
            timeout: Seconds allowed per external utility (None waits forever)
            rollback_on_failure: Undo a half-written override when a step fails
            programs: Tool name to executable mapping
            spawner: Starts the Finder refresh without waiting for it
            refresh_delays: Delays after quitting and after relaunching the Finder
        """
        self.executor = executor or PlatformUtils.execute
        self.scratch_dir = Path(scratch_dir) if scratch_dir else None
        self.timeout = timeout
        self.rollback_on_failure = rollback_on_failure
        self.programs = programs if programs is not None else PlatformUtils.resolve_programs()
        self.spawner = spawner or PlatformUtils.spawn_detached
        self.refresh_delays = refresh_delays

    @classmethod
    def from_config(cls, config, **overrides) -> 'IconRestoreEngine':
        """Build an engine from a ConfigManager"""
        options = {
            'timeout': config.get('restore.tool_timeout'),
            'rollback_on_failure': config.get('restore.rollback_on_failure', True),
            'refresh_delays': (
                config.get('refresh.quit_delay', 2),
                config.get('refresh.activate_delay', 1),
            ),
        }
        options.update(overrides)
        return cls(**options)

    def _run_step(self, step: PipelineStep) -> CommandResult:
        if isinstance(step, ToolStep):
            return self.executor(list(step.argv), timeout=self.timeout, stdout_path=step.stdout_path)

        try:
            step.action()
        except OSError as e:
            return CommandResult([step.name], 1, '', str(e))
        return CommandResult([step.name], 0)

    def _rollback(self, bundle: Path) -> None:
        """Return the bundle to its default-icon state after a partial write"""
        logger.warning(f"Rolling back icon override for {bundle}")

        try:
            _remove_if_present(bundle / MARKER_NAME)
        except OSError as e:
            logger.warning(f"Could not remove icon marker in {bundle}: {e}")

        result = self.executor(
            [self.programs.get('SetFile', 'SetFile'), '-a', 'c', str(bundle)],
            timeout=self.timeout,
            stdout_path=None
        )
        if not result.success:
            logger.warning(f"Could not clear custom icon flag on {bundle}: {result.stderr.strip()}")

    def restore(self, bundle_path: Union[str, Path]) -> None:
        """
        Restore one bundle's default icon

        Raises:
            RestoreError: With the kind classifying the failure
        """
        bundle = Path(bundle_path).expanduser().absolute()
        icon_file = resolve_icon_file(bundle)
        logger.debug(f"Restoring {bundle} from {icon_file.name}")

        scratch_root = self.scratch_dir or Path(get_scratch_dir())
        scratch_root.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix='iconrestore-', dir=scratch_root) as workdir:
            bundle_touched = False
            for step in build_pipeline(icon_file, bundle, Path(workdir), self.programs):
                logger.debug(f"[{step.name}] {bundle.name}")
                result = self._run_step(step)

                if not result.success:
                    details = f"{step.name} exited with {result.returncode}"
                    if result.stderr.strip():
                        details += f": {result.stderr.strip()}"

                    if self.rollback_on_failure and (bundle_touched or step.mutates_bundle):
                        self._rollback(bundle)

                    raise RestoreError(RestoreErrorKind.RESTORE_OPERATION_FAILED, bundle, details)

                bundle_touched = bundle_touched or step.mutates_bundle

        logger.info(f"Restored icon for {bundle.stem}")

    def try_restore(self, bundle_path: Union[str, Path]) -> RestoreOutcome:
        """Restore one bundle, reporting failure as a value instead of raising"""
        try:
            self.restore(bundle_path)
        except RestoreError as e:
            logger.warning(str(e))
            return RestoreOutcome(str(bundle_path), e)
        return RestoreOutcome(str(bundle_path))

    def restore_batch(self, bundle_paths: Iterable[Union[str, Path]], refresh: bool = True,
                      progress: Optional[BatchProgress] = None) -> BatchResult:
        """
        Restore several bundles, continuing past individual failures

        Args:
            bundle_paths: Bundles to restore, in order
            refresh: Restart the Finder once after the last bundle
            progress: Called as progress(index, total, path) before each bundle

        Returns:
            BatchResult with one outcome per bundle
        """
        paths = [str(path) for path in bundle_paths]
        result = BatchResult()

        for index, path in enumerate(paths):
            if progress:
                progress(index, len(paths), path)
            result.outcomes.append(self.try_restore(path))

        if refresh and paths:
            self.refresh_display()
            result.refreshed = True

        logger.info(f"Batch restore finished: {result.success_count} succeeded, "
                    f"{result.failure_count} failed")
        return result

    def refresh_display(self) -> None:
        """Restart the Finder in the background; failures are ignored"""
        argv = [self.programs.get('osascript', 'osascript')]
        for line in build_refresh_script(*self.refresh_delays):
            argv.extend(['-e', line])

        if not self.spawner(argv):
            logger.debug("Finder refresh could not be started")
