"""
CLI Module

Command line interface for IconRestore providing:
- Application scanning and inspection
- Single and batch icon restores with progress
- Finder refresh
- Status and configuration management
"""

import time
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.prompt import Confirm
from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn

from .env import env, get_config_summary, initialize_env_file, is_first_run
from .config_manager import CONFIG_SCHEMA, ConfigManager, ConfigurationError
from .platform_utils import PlatformUtils
from .bundle_inspector import BundleDescriptor, BundleInspector
from .icon_restore import IconRestoreEngine, RestoreError
from .common.logger import IconRestoreLogger, get_log_info, setup_logging, set_log_level
from .common.utils import format_duration


class IconRestoreCLI:
    """Command line front end over the inspector and the restore engine"""

    def __init__(self, config: Optional[ConfigManager] = None,
                 engine: Optional[IconRestoreEngine] = None,
                 console: Optional[Console] = None):
        """Initialize CLI interface"""
        self.console = console or Console()
        self.config = config or ConfigManager()
        self.inspector = BundleInspector(self.config.get('scan.directories', ['/Applications']))
        self.engine = engine or IconRestoreEngine.from_config(self.config)

    def _print(self, message: str, style: Optional[str] = None) -> None:
        """Print message with optional styling"""
        if style:
            self.console.print(message, style=style)
        else:
            self.console.print(message)

    def _print_panel(self, content: str, title: str, style: str = "blue") -> None:
        self.console.print(Panel(content, title=title, border_style=style))

    def _progress(self) -> Progress:
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=self.console,
            transient=True
        )

    def _scan(self, directories: List[str]) -> List[BundleDescriptor]:
        """Scan directories with a progress bar"""
        inspector = BundleInspector(directories) if directories else self.inspector

        with self._progress() as progress:
            task = progress.add_task("Scanning applications...", total=None)

            def on_item(index: int, total: int, path: Path) -> None:
                progress.update(task, total=total, completed=index,
                                description=f"Processing: {path.name}")

            return inspector.scan_all(on_item)

    def scan(self, directories: List[str]) -> int:
        """List application bundles found in the given or configured directories"""
        descriptors = self._scan(directories)

        if not descriptors:
            self._print("No applications found.", "yellow")
            return 0

        table = Table(show_header=True, header_style="bold blue")
        table.add_column("", width=2)
        table.add_column("Name", width=28)
        table.add_column("Version", width=12)
        table.add_column("Identifier", width=36)
        table.add_column("Path")

        for descriptor in descriptors:
            table.add_row(
                "🖼" if descriptor.icon else "▢",
                descriptor.display_name,
                descriptor.version or "-",
                descriptor.bundle_identifier or "-",
                descriptor.bundle_path
            )

        self.console.print(table)
        self._print(f"Found {len(descriptors)} applications", "dim")
        return 0

    def info(self, path: str) -> int:
        """Show the descriptor for one bundle"""
        descriptor = self.inspector.inspect(path)
        if descriptor is None:
            self._print(f"❌ Not an application bundle: {path}", "red")
            return 1

        content = f"Name: {descriptor.display_name}\n"
        content += f"Path: {descriptor.bundle_path}\n"
        content += f"Version: {descriptor.version or 'unknown'}\n"
        content += f"Identifier: {descriptor.bundle_identifier or 'unknown'}\n"
        content += f"Icon: {descriptor.icon or 'none'}"
        self._print_panel(content, descriptor.display_name, "cyan")
        return 0

    def restore(self, paths: List[str], restore_all: bool = False,
                refresh: bool = True, assume_yes: bool = False) -> int:
        """
        Restore default icons

        Returns:
            Process exit code: 0 if every restore succeeded, 1 otherwise
        """
        refresh = refresh and self.config.get('restore.refresh_finder', True)

        descriptors = self._scan([]) if restore_all else []
        descriptors = self.inspector.add_paths(descriptors, paths)

        if not descriptors:
            self._print("No applications selected.", "yellow")
            return 1

        if len(descriptors) == 1 and not restore_all:
            return self._restore_single(descriptors[0], refresh)

        if not assume_yes and not Confirm.ask(
                f"Restore the original icon of {len(descriptors)} applications?", default=False):
            self._print("Cancelled.", "yellow")
            return 1

        return self._restore_batch(descriptors, refresh)

    def _restore_single(self, descriptor: BundleDescriptor, refresh: bool) -> int:
        try:
            self.engine.restore(descriptor.bundle_path)
        except RestoreError as e:
            self._print(f"❌ Failed to restore {descriptor.display_name}: {e.kind.description}", "red")
            if e.details:
                self._print(f"   {e.details}", "dim")
            return 1

        if refresh:
            self.engine.refresh_display()
        self._print(f"✅ Restored the icon of {descriptor.display_name}", "green")
        return 0

    def _restore_batch(self, descriptors: List[BundleDescriptor], refresh: bool) -> int:
        names = {d.bundle_path: d.display_name for d in descriptors}
        started = time.monotonic()

        with self._progress() as progress:
            task = progress.add_task("Restoring application icons...", total=len(descriptors))

            def on_item(index: int, total: int, path: str) -> None:
                progress.update(task, completed=index, description=f"Restoring: {names.get(path, path)}")

            result = self.engine.restore_batch([d.bundle_path for d in descriptors],
                                               refresh=refresh, progress=on_item)

        for outcome in result.failures:
            self._print(f"❌ {names.get(outcome.bundle_path, outcome.bundle_path)}: "
                        f"{outcome.kind.description}", "red")

        style = "green" if result.failure_count == 0 else "yellow"
        self._print(f"Restore finished in {format_duration(time.monotonic() - started)}. "
                    f"Success: {result.success_count}, failed: {result.failure_count}", style)
        return 0 if result.failure_count == 0 else 1

    def refresh(self) -> int:
        self.engine.refresh_display()
        self._print("🔄 Finder refresh requested", "blue")
        return 0

    def status(self) -> int:
        """Show platform, tool availability and configuration"""
        system_info = PlatformUtils.get_system_info()
        env_summary = get_config_summary()
        config_summary = self.config.summary()

        status_info = "System Information:\n"
        status_info += f"  Platform: {system_info['platform']}\n"
        status_info += f"  Python: {system_info['python_version']}\n"
        if not system_info['is_macos']:
            status_info += "  [yellow]Icon restores need macOS[/yellow]\n"

        status_info += "\nRequired Tools:\n"
        for name, location in system_info['tools'].items():
            mark = f"[green]✓[/green] {location}" if location else "[red]✗ missing[/red]"
            status_info += f"  {name}: {mark}\n"

        status_info += "\nConfiguration:\n"
        status_info += f"  Home: {env_summary['paths']['home_dir']}\n"
        status_info += f"  Settings file: {config_summary['config_file']}"
        status_info += f" {'✓' if config_summary['config_exists'] else '(defaults)'}\n"
        status_info += f"  Scan directories: {', '.join(config_summary['scan_directories'])}\n"
        status_info += f"  Refresh Finder: {config_summary['refresh_finder']}\n"
        status_info += f"  Rollback on failure: {config_summary['rollback_on_failure']}"

        log_info = get_log_info()
        status_info += "\n\nLogging:\n"
        status_info += f"  Directory: {log_info['log_directory']}\n"
        status_info += f"  File logging: {env.log_file_enabled}\n"
        status_info += f"  Log files: {len(log_info['log_files'])}"

        self._print_panel(status_info, f"IconRestore v{env.version}", "green")

        if is_first_run():
            self._print("No configuration yet. Run: iconrestore config init", "yellow")

        missing = [name for name, location in system_info['tools'].items() if location is None]
        if missing:
            self._print("Install the Xcode Command Line Tools: xcode-select --install", "yellow")
        return 0

    def logs(self, clean_days: Optional[int] = None) -> int:
        """List log files, optionally removing those older than clean_days"""
        if clean_days is not None:
            removed = IconRestoreLogger.cleanup_old_logs(days=clean_days)
            self._print(f"🧹 Removed {removed} log files older than {clean_days} days", "blue")

        log_files = get_log_info()['log_files']
        if not log_files:
            self._print("No log files.", "yellow")
            return 0

        table = Table(show_header=True, header_style="bold blue")
        table.add_column("File", width=24)
        table.add_column("Size", width=10)
        table.add_column("Modified")
        for name, details in sorted(log_files.items()):
            table.add_row(name, str(details['size']), details['modified'])

        self.console.print(table)
        return 0

    def show_config(self) -> int:
        table = Table(show_header=True, header_style="bold blue")
        table.add_column("Key", width=28)
        table.add_column("Value", width=24)
        table.add_column("Description")

        for field in CONFIG_SCHEMA:
            value = self.config.get(field.name)
            if isinstance(value, list):
                value = ', '.join(value)
            table.add_row(field.name, str(value), field.description)

        self.console.print(table)

        for error in self.config.validate():
            self._print(f"⚠️  {error}", "yellow")
        return 0

    def set_config(self, key: str, raw_value: str) -> int:
        try:
            value = self.config.coerce(key, raw_value)
            self.config.set(key, value)
        except ConfigurationError as e:
            self._print(f"❌ {e}", "red")
            return 1

        self._print(f"✅ {key} = {value}", "green")
        return 0

    def init_config(self) -> int:
        """Write the .env file and the settings file with defaults"""
        if not initialize_env_file():
            self._print("❌ Failed to create configuration file", "red")
            return 1

        try:
            self.config.save()
        except ConfigurationError as e:
            self._print(f"❌ {e}", "red")
            return 1

        self._print("✅ Configuration created", "green")
        self._print(f"  - Environment: {env.env_file}")
        self._print(f"  - Settings: {self.config.config_file}")
        return 0


def _load_cli(ctx: click.Context) -> IconRestoreCLI:
    try:
        return IconRestoreCLI()
    except ConfigurationError as e:
        click.echo(f"❌ {e}", err=True)
        ctx.exit(1)


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--debug', is_flag=True, help='Show debug logging')
@click.version_option(env.version, prog_name='iconrestore')
def main(debug: bool) -> None:
    """Restore the original icons of macOS applications."""
    setup_logging()
    if debug:
        set_log_level('DEBUG', 'console')


@main.command()
@click.argument('directories', nargs=-1, type=click.Path(file_okay=False))
@click.pass_context
def scan(ctx: click.Context, directories) -> None:
    """List applications in DIRECTORIES (default: configured directories)."""
    ctx.exit(_load_cli(ctx).scan(list(directories)))


@main.command()
@click.argument('path', type=click.Path())
@click.pass_context
def info(ctx: click.Context, path: str) -> None:
    """Show metadata for one application bundle."""
    ctx.exit(_load_cli(ctx).info(path))


@main.command()
@click.argument('paths', nargs=-1, type=click.Path())
@click.option('--all', 'restore_all', is_flag=True, help='Restore every scanned application')
@click.option('--no-refresh', is_flag=True, help='Do not restart the Finder afterwards')
@click.option('--yes', '-y', 'assume_yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def restore(ctx: click.Context, paths, restore_all: bool, no_refresh: bool, assume_yes: bool) -> None:
    """Restore the original icon of the applications at PATHS."""
    if not paths and not restore_all:
        raise click.UsageError("Give at least one application path or --all")
    ctx.exit(_load_cli(ctx).restore(list(paths), restore_all, not no_refresh, assume_yes))


@main.command()
@click.pass_context
def refresh(ctx: click.Context) -> None:
    """Restart the Finder so icon changes show up."""
    ctx.exit(_load_cli(ctx).refresh())


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show platform, tool and configuration status."""
    ctx.exit(_load_cli(ctx).status())


@main.command()
@click.option('--clean', 'clean_days', type=click.IntRange(min=0), metavar='DAYS',
              help='Remove log files older than DAYS first')
@click.pass_context
def logs(ctx: click.Context, clean_days: Optional[int]) -> None:
    """List log files."""
    ctx.exit(_load_cli(ctx).logs(clean_days))


@main.group()
def config() -> None:
    """Manage settings."""


@config.command('show')
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current settings."""
    ctx.exit(_load_cli(ctx).show_config())


@config.command('set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set KEY to VALUE (lists are comma separated)."""
    ctx.exit(_load_cli(ctx).set_config(key, value))


@config.command('init')
@click.pass_context
def config_init(ctx: click.Context) -> None:
    """Create the configuration files with defaults."""
    ctx.exit(_load_cli(ctx).init_config())
