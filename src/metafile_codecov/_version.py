"""Package identity reported in every payload's ``plugin`` block."""

PLUGIN_NAME = "metafile-codecov-bundle"
__version__ = "0.1.0"

__all__ = ["PLUGIN_NAME", "__version__"]
