"""Error kinds raised by the histogram and curve core."""


class LumascopeError(Exception):
    """Base class for all core errors."""


class InvalidInput(LumascopeError, ValueError):
    """Empty/malformed buffer, bad bin count, or malformed point data."""


class UnsupportedFormat(LumascopeError, ValueError):
    """Pixel format with no defined luminance extraction rule."""
