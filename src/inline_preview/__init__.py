"""Top-level package for the inline image previewer.

The preview engine keeps rendered image blocks next to the markdown image
references of a block-oriented text document.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
