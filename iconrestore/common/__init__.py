"""
IconRestore Common Libraries

Provides common functionality shared by the core modules:
- Unified logging
- Small utility helpers
"""
