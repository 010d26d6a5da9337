"""Test configuration and fixtures for IconRestore test suite"""

import os
import sys
import plistlib
import pytest
from pathlib import Path
from typing import Dict, List, Optional, Set
from unittest.mock import Mock

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from iconrestore.platform_utils import CommandResult, EXIT_NOT_FOUND
from iconrestore.icon_restore import IconRestoreEngine

# Stand-in for real icon data
ICNS_BYTES = b'icns\x00\x00\x00\x10is32\x00\x00\x00\x08'


class FakeToolchain:
    """
    Executor standing in for sips, DeRez, Rez and SetFile

    Records every call, tracks Finder attribute letters per path and the
    resource data appended to each file.
    """

    def __init__(self, fail_on: Optional[str] = None):
        # 'SetFile -a V' style prefix, or a bare program name
        self.fail_on = fail_on
        self.calls: List[List[str]] = []
        self.attributes: Dict[str, Set[str]] = {}
        self.resource_forks: Dict[str, bytes] = {}

    def __call__(self, argv, timeout=None, stdout_path=None) -> CommandResult:
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        program = Path(argv[0]).name
        command = ' '.join([program] + argv[1:])

        if self.fail_on and command.startswith(self.fail_on):
            return CommandResult(argv, 1, '', f'{program}: simulated failure')

        if program == 'sips':
            return CommandResult(argv, 0 if Path(argv[-1]).exists() else 1)

        if program == 'DeRez':
            source = Path(argv[-1])
            if not source.exists():
                return CommandResult(argv, 2, '', 'no such file')
            Path(stdout_path).write_bytes(b"data 'icns' (-16455) {\n  $\"" + source.read_bytes().hex().encode() + b"\"\n};\n")
            return CommandResult(argv, 0)

        if program == 'Rez':
            rsrc, target = Path(argv[2]), Path(argv[4])
            if not rsrc.exists() or not target.exists():
                return CommandResult(argv, 1, '', 'missing input')
            self.resource_forks[str(target)] = self.resource_forks.get(str(target), b'') + rsrc.read_bytes()
            return CommandResult(argv, 0)

        if program == 'SetFile':
            letters, target = argv[2], argv[3]
            if not Path(target).exists():
                return CommandResult(argv, 1, '', 'no such file')
            flags = self.attributes.setdefault(target, set())
            for letter in letters:
                if letter.isupper():
                    flags.add(letter)
                else:
                    flags.discard(letter.upper())
            return CommandResult(argv, 0)

        return CommandResult(argv, EXIT_NOT_FOUND, '', f'Command not found: {program}')

    def programs_called(self) -> List[str]:
        return [Path(call[0]).name for call in self.calls]

    def flags(self, path) -> Set[str]:
        return self.attributes.get(str(path), set())


def build_bundle(parent: Path, name: str = 'Foo', icon_file: Optional[str] = 'AppIcon',
                 with_contents: bool = True, with_manifest: bool = True,
                 with_icon: bool = True, manifest_extra: Optional[dict] = None,
                 raw_manifest: Optional[bytes] = None) -> Path:
    """Create an application bundle layout on disk"""
    bundle = parent / f'{name}.app'
    bundle.mkdir(parents=True)

    if not with_contents:
        return bundle

    resources = bundle / 'Contents' / 'Resources'
    resources.mkdir(parents=True)

    if with_manifest:
        manifest_path = bundle / 'Contents' / 'Info.plist'
        if raw_manifest is not None:
            manifest_path.write_bytes(raw_manifest)
        else:
            manifest = {
                'CFBundleIdentifier': f'com.example.{name.lower()}',
                'CFBundleShortVersionString': '1.2.3',
            }
            if icon_file is not None:
                manifest['CFBundleIconFile'] = icon_file
            manifest.update(manifest_extra or {})
            with open(manifest_path, 'wb') as f:
                plistlib.dump(manifest, f)

    if with_icon and icon_file:
        icon_name = icon_file if icon_file.endswith('.icns') else f'{icon_file}.icns'
        (resources / icon_name).write_bytes(ICNS_BYTES)

    return bundle


def snapshot(root: Path) -> Dict[str, bytes]:
    """Every file under root with its content, for no-write assertions"""
    return {
        str(p.relative_to(root)): (p.read_bytes() if p.is_file() else b'<dir>')
        for p in sorted(root.rglob('*'))
    }


@pytest.fixture
def iconrestore_home(tmp_path, monkeypatch):
    """Isolated ICONRESTORE_HOME"""
    home = tmp_path / 'home'
    home.mkdir()
    monkeypatch.setenv('ICONRESTORE_HOME', str(home))
    for key in list(os.environ):
        if key.startswith('ICONRESTORE_') and key != 'ICONRESTORE_HOME':
            monkeypatch.delenv(key)
    yield home
    # Drop whatever a .env load added during the test
    for key in list(os.environ):
        if key.startswith('ICONRESTORE_') and key != 'ICONRESTORE_HOME':
            del os.environ[key]


@pytest.fixture
def apps_dir(tmp_path):
    """Directory standing in for /Applications"""
    directory = tmp_path / 'Applications'
    directory.mkdir()
    return directory


@pytest.fixture
def make_bundle(apps_dir):
    """Factory creating bundles inside apps_dir"""
    def factory(name: str = 'Foo', **kwargs) -> Path:
        return build_bundle(apps_dir, name, **kwargs)
    return factory


@pytest.fixture
def bad_date_manifest():
    """Well-formed XML whose <date> value plistlib cannot parse"""
    return (
        b'<?xml version="1.0" encoding="UTF-8"?>\n'
        b'<plist version="1.0"><dict>'
        b'<key>CFBundleIconFile</key><string>AppIcon</string>'
        b'<key>BuildDate</key><date>yesterday</date>'
        b'</dict></plist>\n'
    )


@pytest.fixture
def toolchain():
    return FakeToolchain()


@pytest.fixture
def toolchain_factory():
    return FakeToolchain


@pytest.fixture
def take_snapshot():
    return snapshot


@pytest.fixture
def scratch_dir(tmp_path):
    directory = tmp_path / 'scratch'
    directory.mkdir()
    return directory


@pytest.fixture
def spawner():
    return Mock(return_value=True)


@pytest.fixture
def engine(toolchain, scratch_dir, spawner):
    """Engine wired to the fake toolchain"""
    return IconRestoreEngine(
        executor=toolchain,
        scratch_dir=scratch_dir,
        programs={},
        spawner=spawner
    )


# Pytest hooks for better test organization
def pytest_configure(config):
    """Configure pytest with custom markers and settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
    config.addinivalue_line("markers", "core: Core module tests")
    config.addinivalue_line("markers", "common: Common library tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically"""
    for item in items:
        path = str(item.path)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)

        if os.sep + "core" + os.sep in path:
            item.add_marker(pytest.mark.core)
        elif os.sep + "common" + os.sep in path:
            item.add_marker(pytest.mark.common)
