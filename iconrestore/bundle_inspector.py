"""
Bundle Inspector Module

Reads application bundles without modifying them:
- Admission by bundle extension
- Manifest (Info.plist) metadata extraction
- Directory scanning with progress callbacks
- De-duplicating merge of descriptor lists
"""

import plistlib
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .common.logger import get_logger

logger = get_logger(__name__)

BUNDLE_EXTENSION = '.app'
ICON_EXTENSION = '.icns'

MANIFEST_RELPATH = Path('Contents') / 'Info.plist'
RESOURCES_RELPATH = Path('Contents') / 'Resources'

ProgressCallback = Callable[[int, int, Path], None]

# Everything read_manifest can raise for a missing or malformed file
MANIFEST_ERRORS = (OSError, ValueError)


@dataclass(frozen=True)
class BundleDescriptor:
    """Display metadata for one application bundle; identity is bundle_path"""
    display_name: str = field(compare=False)
    bundle_path: str
    version: Optional[str] = field(default=None, compare=False)
    bundle_identifier: Optional[str] = field(default=None, compare=False)
    # Declared .icns file, for display only
    icon: Optional[Path] = field(default=None, compare=False)


def is_bundle_path(path: Union[str, Path]) -> bool:
    """True if the path carries the application-bundle extension"""
    return Path(path).suffix == BUNDLE_EXTENSION


def is_hidden(path: Path) -> bool:
    """Dot-prefixed names and entries carrying the Finder hidden flag"""
    if path.name.startswith('.'):
        return True
    try:
        flags = getattr(path.lstat(), 'st_flags', 0)
    except OSError:
        return False
    return bool(flags & stat.UF_HIDDEN)


def read_manifest(bundle: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a bundle's Info.plist

    Raises:
        OSError: If the manifest cannot be read
        ValueError: If it does not parse as a property list or its root is not a dictionary
    """
    with open(Path(bundle) / MANIFEST_RELPATH, 'rb') as f:
        try:
            manifest = plistlib.load(f)
        except Exception as e:
            # expat, binascii and date parsing errors escape plistlib on bad values
            raise ValueError(f"Malformed manifest: {e}") from e

    if not isinstance(manifest, dict):
        raise ValueError("Manifest root is not a dictionary")
    return manifest


def normalize_icon_name(icon_name: str) -> str:
    """Append the .icns extension unless the name already has it"""
    if icon_name.endswith(ICON_EXTENSION):
        return icon_name
    return f"{icon_name}{ICON_EXTENSION}"


def _string_field(manifest: Dict[str, Any], key: str) -> Optional[str]:
    value = manifest.get(key)
    return value if isinstance(value, str) else None


def inspect_bundle(path: Union[str, Path]) -> Optional[BundleDescriptor]:
    """
    Build a descriptor for one bundle

    A missing or malformed manifest only leaves the optional fields empty.

    Args:
        path: Filesystem path of the bundle

    Returns:
        BundleDescriptor, or None if the path is not an application bundle
    """
    bundle = Path(path).expanduser().absolute()
    if not is_bundle_path(bundle):
        return None

    version = None
    bundle_identifier = None
    icon = None

    try:
        manifest = read_manifest(bundle)
    except MANIFEST_ERRORS as e:
        logger.debug(f"Manifest unreadable for {bundle}: {e}")
    else:
        version = _string_field(manifest, 'CFBundleShortVersionString')
        bundle_identifier = _string_field(manifest, 'CFBundleIdentifier')

        icon_name = _string_field(manifest, 'CFBundleIconFile')
        if icon_name:
            candidate = bundle / RESOURCES_RELPATH / normalize_icon_name(icon_name)
            if candidate.is_file():
                icon = candidate

    return BundleDescriptor(
        display_name=bundle.stem,
        bundle_path=str(bundle),
        version=version,
        bundle_identifier=bundle_identifier,
        icon=icon
    )


def scan_directory(directory: Union[str, Path],
                   progress: Optional[ProgressCallback] = None) -> List[BundleDescriptor]:
    """
    List the application bundles directly inside a directory

    Hidden entries and entries without the bundle extension are skipped.
    Entries that fail inspection are dropped silently.

    Args:
        directory: Directory to list (not recursed)
        progress: Called as progress(index, total, path) before each bundle

    Returns:
        Descriptors sorted by entry name

    Raises:
        OSError: If the directory itself cannot be listed
    """
    root = Path(directory).expanduser()
    candidates = sorted(
        (entry for entry in root.iterdir()
         if is_bundle_path(entry) and not is_hidden(entry)),
        key=lambda entry: entry.name.lower()
    )

    descriptors = []
    total = len(candidates)
    for index, entry in enumerate(candidates):
        if progress:
            progress(index, total, entry)

        descriptor = inspect_bundle(entry)
        if descriptor is not None:
            descriptors.append(descriptor)

    logger.debug(f"Found {len(descriptors)} bundles in {root}")
    return descriptors


def merge_descriptors(existing: Iterable[BundleDescriptor],
                      additions: Iterable[BundleDescriptor]) -> List[BundleDescriptor]:
    """Append additions to existing, skipping any bundle_path already present"""
    merged = []
    seen = set()
    for descriptor in list(existing) + list(additions):
        if descriptor.bundle_path in seen:
            continue
        seen.add(descriptor.bundle_path)
        merged.append(descriptor)
    return merged


class BundleInspector:
    """Collects bundle descriptors from scanned directories and explicit picks"""

    def __init__(self, directories: Optional[Iterable[Union[str, Path]]] = None):
        self.directories = [Path(d).expanduser() for d in (directories or ['/Applications'])]

    def inspect(self, path: Union[str, Path]) -> Optional[BundleDescriptor]:
        return inspect_bundle(path)

    def scan(self, directory: Union[str, Path],
             progress: Optional[ProgressCallback] = None) -> List[BundleDescriptor]:
        return scan_directory(directory, progress)

    def scan_all(self, progress: Optional[ProgressCallback] = None) -> List[BundleDescriptor]:
        """
        Scan every configured directory and merge the results

        Directories that are missing or unreadable are skipped with a warning.
        """
        descriptors: List[BundleDescriptor] = []
        for directory in self.directories:
            if not directory.is_dir():
                logger.debug(f"Skipping missing directory {directory}")
                continue
            try:
                found = scan_directory(directory, progress)
            except OSError as e:
                logger.warning(f"Cannot scan {directory}: {e}")
                continue
            descriptors = merge_descriptors(descriptors, found)
        return descriptors

    def add_paths(self, descriptors: Iterable[BundleDescriptor],
                  paths: Iterable[Union[str, Path]]) -> List[BundleDescriptor]:
        """Inspect manually picked paths and merge them into a descriptor list"""
        picked = []
        for path in paths:
            descriptor = inspect_bundle(path)
            if descriptor is None:
                logger.warning(f"Not an application bundle: {path}")
                continue
            picked.append(descriptor)
        return merge_descriptors(descriptors, picked)
