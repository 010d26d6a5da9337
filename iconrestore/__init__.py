"""
IconRestore

Restores the default icon of macOS application bundles after a custom icon
has been applied:
- Bundle discovery and inspection
- Icon override rewrite through the developer tools
- Finder refresh
"""

__version__ = "0.1.0"
__all__ = [
    'BundleDescriptor',
    'BundleInspector',
    'IconRestoreEngine',
    'RestoreError',
    'RestoreErrorKind',
]

from .bundle_inspector import BundleDescriptor, BundleInspector
from .icon_restore import IconRestoreEngine, RestoreError, RestoreErrorKind
