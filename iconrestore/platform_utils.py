"""
Platform Utilities Module

Provides platform helpers used by the restore engine and the CLI:
- OS detection and system information
- Developer tool availability checks
- Structured execution of external commands
"""

import sys
import platform
import subprocess
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .common.logger import get_logger

logger = get_logger(__name__)

# Exit statuses reported when a command could not be run at all
EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Outcome of one external command"""
    command: List[str]
    returncode: int
    stdout: str = ''
    stderr: str = ''

    @property
    def success(self) -> bool:
        return self.returncode == 0


@dataclass
class RequiredTool:
    """External utility the restore pipeline depends on"""
    name: str
    purpose: str
    # Where the tool usually lives when it is not on PATH
    fallback_paths: List[str] = field(default_factory=list)


class PlatformUtils:
    """Platform-specific utility functions"""

    REQUIRED_TOOLS = [
        RequiredTool('sips', 'icon-bundle normalization'),
        RequiredTool('DeRez', 'resource extraction', ['/Library/Developer/CommandLineTools/usr/bin/DeRez']),
        RequiredTool('Rez', 'resource fork append', ['/Library/Developer/CommandLineTools/usr/bin/Rez']),
        RequiredTool('SetFile', 'Finder attribute flags', ['/Library/Developer/CommandLineTools/usr/bin/SetFile']),
        RequiredTool('osascript', 'Finder refresh'),
    ]

    @classmethod
    def get_platform_info(cls) -> str:
        """Get detailed platform information"""
        system = platform.system()
        machine = platform.machine()

        if system == 'Darwin':
            version = platform.mac_ver()[0]
            return f"macOS {version} ({machine})"
        return f"{system} ({machine})"

    @classmethod
    def get_os_type(cls) -> str:
        """Get normalized OS type"""
        return platform.system().lower()

    @classmethod
    def is_macos(cls) -> bool:
        return cls.get_os_type() == 'darwin'

    @classmethod
    def command_exists(cls, command: str) -> bool:
        """Check if a command exists in system PATH"""
        return shutil.which(command) is not None

    @classmethod
    def locate_tool(cls, tool: RequiredTool) -> Optional[str]:
        """Resolve a required tool to an executable path, or None if unavailable"""
        found = shutil.which(tool.name)
        if found:
            return found

        for candidate in tool.fallback_paths:
            if Path(candidate).exists():
                return candidate

        return None

    @classmethod
    def check_required_tools(cls) -> Dict[str, Optional[str]]:
        """Map each required tool name to its location (None when missing)"""
        return {tool.name: cls.locate_tool(tool) for tool in cls.REQUIRED_TOOLS}

    @classmethod
    def resolve_programs(cls) -> Dict[str, str]:
        """Map each required tool name to the program to invoke, falling back to the bare name"""
        return {name: location or name for name, location in cls.check_required_tools().items()}

    @classmethod
    def missing_tools(cls) -> List[str]:
        return [name for name, location in cls.check_required_tools().items() if location is None]

    @classmethod
    def execute(cls, command: Sequence[str], timeout: Optional[float] = None,
                stdout_path: Optional[Union[str, Path]] = None) -> CommandResult:
        """
        Run an external command without a shell

        Args:
            command: Program and arguments; every element is passed verbatim
            timeout: Seconds before the command is killed (None waits forever)
            stdout_path: Write standard output to this file instead of capturing it

        Returns:
            CommandResult with the exit status and captured output
        """
        argv = [str(part) for part in command]
        logger.debug(f"Running: {' '.join(argv)}")

        try:
            if stdout_path is not None:
                with open(stdout_path, 'wb') as out:
                    result = subprocess.run(
                        argv,
                        stdout=out,
                        stderr=subprocess.PIPE,
                        timeout=timeout,
                        check=False
                    )
                stdout = ''
            else:
                result = subprocess.run(
                    argv,
                    capture_output=True,
                    timeout=timeout,
                    check=False
                )
                stdout = result.stdout.decode('utf-8', errors='replace')

            return CommandResult(
                command=argv,
                returncode=result.returncode,
                stdout=stdout,
                stderr=result.stderr.decode('utf-8', errors='replace')
            )

        except subprocess.TimeoutExpired:
            return CommandResult(argv, EXIT_TIMEOUT, '', f"Command timed out after {timeout} seconds")
        except FileNotFoundError:
            return CommandResult(argv, EXIT_NOT_FOUND, '', f"Command not found: {argv[0]}")
        except OSError as e:
            return CommandResult(argv, 1, '', str(e))

    @classmethod
    def spawn_detached(cls, command: Sequence[str]) -> bool:
        """
        Start a command in its own session without waiting for it

        Returns:
            True if the process was started
        """
        argv = [str(part) for part in command]
        try:
            subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True
            )
            return True
        except OSError as e:
            logger.debug(f"Could not start {argv[0]}: {e}")
            return False

    @classmethod
    def get_system_info(cls) -> Dict[str, object]:
        """Get system information relevant to icon restoration"""
        return {
            'platform': cls.get_platform_info(),
            'os_type': cls.get_os_type(),
            'is_macos': cls.is_macos(),
            'python_version': f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
            'python_executable': sys.executable,
            'tools': cls.check_required_tools(),
        }
