"""Filesystem-safe filename helpers."""
import re

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

WINDOWS_RESERVED_NAMES = frozenset(
    ['CON', 'PRN', 'AUX', 'NUL']
    + [f'COM{i}' for i in range(1, 10)]
    + [f'LPT{i}' for i in range(1, 10)]
)

MAX_FILENAME_LENGTH = 200

_REPEATED_UNDERSCORES = re.compile(r'_{2,}')
_EXTENSION = re.compile(r'\.[A-Za-z0-9]{1,10}$')
_TRAVERSAL = re.compile(r'(^|[\\/])\.\.([\\/]|$)')


def clamp_filename(name: str, max_length: int) -> str:
    """Truncate a filename to max_length, keeping a short extension intact."""
    if len(name) <= max_length:
        return name

    match = _EXTENSION.search(name)
    if match and len(match.group(0)) < max_length:
        ext = match.group(0)
        return name[:max_length - len(ext)] + ext
    return name[:max_length]


def sanitize_filename(name: str, max_length: int = MAX_FILENAME_LENGTH) -> str:
    """
    Make a filename safe for common filesystems.

    Invalid characters become '_', leading/trailing dots and spaces are
    removed, Windows reserved device names get a '_' prefix and the result
    is clamped to max_length.

    Args:
        name: Candidate filename
        max_length: Maximum length of the result

    Returns:
        Sanitized filename (may be empty)
    """
    if not name or not isinstance(name, str):
        return ''

    # Bound the work done on very long input
    result = name[:max_length * 2]
    result = INVALID_FILENAME_CHARS.sub('_', result)
    result = result.strip().strip('.').strip()
    result = _REPEATED_UNDERSCORES.sub('_', result)

    if is_reserved_name(result):
        result = '_' + result

    return clamp_filename(result, max_length)


def is_reserved_name(name: str) -> bool:
    """Check for Windows device names such as CON or LPT1.txt."""
    return bool(name) and name.split('.')[0].upper() in WINDOWS_RESERVED_NAMES


def has_path_traversal(name: str) -> bool:
    """Check for '..' path segments or absolute paths in a filename."""
    if not name:
        return False
    if name.startswith(('/', '\\')) or re.match(r'^[A-Za-z]:[\\/]', name):
        return True
    return bool(_TRAVERSAL.search(name))
