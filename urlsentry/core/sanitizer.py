"""Content-safety transforms for URLs, filenames, HTML and content types."""
import re
from typing import Optional, List
from urllib.parse import quote, unquote_plus

from bs4 import BeautifulSoup

from urlsentry.models import ContentTypeResult
from urlsentry.utils.filename import (
    sanitize_filename as base_sanitize_filename, clamp_filename, is_reserved_name
)
from urlsentry.utils.logger import get_logger
from urlsentry.utils.url import is_data_url, is_javascript_url, safe_unquote

logger = get_logger(__name__)

DEFAULT_MAX_URL_LENGTH = 8192
DEFAULT_MAX_FILENAME_LENGTH = 255

UNSAFE_URL_CHARS = re.compile(r'[<>"{}|\\^`\[\]]')
CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')
BIDI_CHARS = re.compile(r'[\u200e\u200f\u202a-\u202e\u2066-\u2069]')
NON_PRINTABLE_ASCII = re.compile(r'[^\x20-\x7e]')

DATA_URL_SHAPE = re.compile(r'^data:[a-z]+/[a-z0-9.+-]+[;,]', re.IGNORECASE)

# scheme://[userinfo@][ipv6] keeps its brackets
_IPV6_AUTHORITY = re.compile(r'^[a-z][a-z0-9+.-]*://(?:[^/?#@]*@)?\[[0-9a-f:.]+\]', re.IGNORECASE)

TRACKING_PARAMS = frozenset([
    # Google Analytics
    'utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content',
    'utm_id', 'utm_source_platform', 'utm_creative_format', 'utm_marketing_tactic',
    # Facebook
    'fbclid', 'fb_action_ids', 'fb_action_types', 'fb_source', 'fb_ref',
    # Ad networks and marketing tools
    'gclid', 'gclsrc', 'dclid', 'msclkid', 'twclid', 'igshid', 'mc_eid',
    '_hsenc', '_hsmi', 'mkt_tok', 'oly_enc_id', 'oly_anon_id', 'vero_id',
    'wickedid',
    # Analytics
    '_ga', '_gl', '_ke', 'trk_contact', 'trk_msg', 'trk_module', 'trk_sid',
    # Affiliate
    'ref', 'affiliate_id', 'aff_id', 'partner_id',
    # Misc
    'si', 'feature', 'share', '__s', 's_kwcid', 'spm', 'algo_pvid', 'algo_expid',
])

# Removed together with their contents
DROPPED_TAGS = ['script', 'style']

# Removed, inner text kept
UNWRAPPED_TAGS = [
    'iframe', 'object', 'embed', 'form', 'input', 'button', 'textarea',
    'select', 'link', 'meta', 'base', 'applet', 'frame', 'frameset',
    'layer', 'ilayer', 'bgsound', 'title', 'head', 'html', 'body',
]

DANGEROUS_TAGS = frozenset(DROPPED_TAGS + UNWRAPPED_TAGS)

DANGEROUS_ATTRS = frozenset([
    'onclick', 'ondblclick', 'onmousedown', 'onmouseup', 'onmouseover',
    'onmouseout', 'onmousemove', 'onkeydown', 'onkeyup', 'onkeypress',
    'onfocus', 'onblur', 'onchange', 'onsubmit', 'onreset', 'onselect',
    'onload', 'onunload', 'onerror', 'onabort', 'onresize', 'onscroll',
    'ondrag', 'ondragend', 'ondragenter', 'ondragleave', 'ondragover',
    'ondragstart', 'ondrop', 'oncontextmenu', 'oncopy', 'oncut', 'onpaste',
    'oninput', 'oninvalid', 'onsearch', 'ontouchstart', 'ontouchmove',
    'ontouchend', 'ontouchcancel', 'onpointerdown', 'onpointerup',
    'onpointermove', 'onanimationstart', 'onanimationend',
    'onanimationiteration', 'ontransitionend', 'formaction', 'xlink:href',
    'data-bind',
])

LINK_ATTRS = ('href', 'src', 'action')
BLOCKED_LINK = '#blocked'
_HTML_DATA_URL = re.compile(r'^\s*data:text/html', re.IGNORECASE)

SAFE_MEDIA_TYPES = frozenset([
    # Images
    'image/jpeg', 'image/png', 'image/gif', 'image/webp', 'image/svg+xml',
    'image/bmp', 'image/tiff', 'image/x-icon', 'image/avif', 'image/heic',
    'image/heif',
    # Video
    'video/mp4', 'video/webm', 'video/ogg', 'video/quicktime',
    'video/x-msvideo', 'video/x-matroska', 'video/3gpp', 'video/3gpp2',
    # Audio
    'audio/mpeg', 'audio/wav', 'audio/ogg', 'audio/webm', 'audio/aac',
    'audio/flac', 'audio/midi', 'audio/x-midi',
    # Documents
    'application/pdf',
])


# =============================================================================
# URLs
# =============================================================================

def _encode_unsafe_chars(url: str) -> str:
    match = _IPV6_AUTHORITY.match(url)
    prefix = match.group(0) if match else ''
    rest = url[len(prefix):]
    return prefix + UNSAFE_URL_CHARS.sub(lambda m: quote(m.group(0), safe=''), rest)


def _is_tracking_pair(pair: str) -> bool:
    if not pair:
        return False
    name = unquote_plus(pair.split('=', 1)[0])
    return name.lower() in TRACKING_PARAMS


def strip_tracking_params(url: str) -> str:
    """
    Remove known tracking parameters from a URL's query string.

    Remaining parameters keep their original encoding and order.
    """
    if not url:
        return url

    before_fragment, hash_sep, fragment = url.partition('#')
    base, question, query = before_fragment.partition('?')
    if not question:
        return url

    pairs = query.split('&')
    kept = [pair for pair in pairs if not _is_tracking_pair(pair)]
    if len(kept) == len(pairs):
        return url

    result = base
    if kept:
        result += '?' + '&'.join(kept)
    return result + hash_sep + fragment


def sanitize_url(
    url: str,
    allow_data_urls: bool = False,
    allow_javascript_urls: bool = False,
    strip_tracking: bool = True,
    max_length: int = DEFAULT_MAX_URL_LENGTH
) -> Optional[str]:
    """
    Clean a URL for safe use.

    Args:
        url: URL to sanitize
        allow_data_urls: Accept well-formed data: URLs
        allow_javascript_urls: Accept javascript: URLs (XSS risk)
        strip_tracking: Remove known tracking parameters
        max_length: Longest URL accepted

    Returns:
        Sanitized URL, or None if the URL was rejected
    """
    if not url or not isinstance(url, str):
        return None

    sanitized = CONTROL_CHARS.sub('', url.strip())
    sanitized = BIDI_CHARS.sub('', sanitized).strip()

    if not sanitized or len(sanitized) > max_length:
        return None

    if is_javascript_url(sanitized) and not allow_javascript_urls:
        return None

    if is_data_url(sanitized):
        if not allow_data_urls:
            return None
        if not DATA_URL_SHAPE.match(sanitized):
            return None

    # Encoded javascript: payloads
    if is_javascript_url(safe_unquote(sanitized)) and not allow_javascript_urls:
        return None

    sanitized = _encode_unsafe_chars(sanitized)

    if strip_tracking and not is_data_url(sanitized):
        sanitized = strip_tracking_params(sanitized).strip()

    if len(sanitized) > max_length:
        return None

    return sanitized


# =============================================================================
# Filenames
# =============================================================================

def sanitize_filename(
    filename: str,
    max_length: int = DEFAULT_MAX_FILENAME_LENGTH,
    replacement: str = '_',
    preserve_unicode: bool = True
) -> str:
    """
    Make a filename safe to write to disk.

    Args:
        filename: Candidate filename
        max_length: Maximum length of the result
        replacement: Substitute for unsafe characters
        preserve_unicode: Keep non-ASCII characters

    Returns:
        Sanitized filename, or 'file' when nothing usable remains
    """
    sanitized = base_sanitize_filename(filename, max_length)

    sanitized = CONTROL_CHARS.sub(replacement, sanitized)
    sanitized = BIDI_CHARS.sub('', sanitized)

    if not preserve_unicode:
        sanitized = NON_PRINTABLE_ASCII.sub(replacement, sanitized)

    if replacement:
        escaped = re.escape(replacement)
        sanitized = re.sub(f'(?:{escaped})+', replacement, sanitized)
        sanitized = re.sub(f'^(?:{escaped})+|(?:{escaped})+$', '', sanitized)

    if is_reserved_name(sanitized):
        sanitized = '_' + sanitized

    sanitized = clamp_filename(sanitized, max_length)

    if not sanitized or sanitized == replacement:
        return 'file'
    return sanitized


# =============================================================================
# HTML
# =============================================================================

def _neutralize_links(tag) -> None:
    for attr in LINK_ATTRS:
        value = tag.get(attr)
        if not isinstance(value, str):
            continue
        if is_javascript_url(value):
            tag[attr] = BLOCKED_LINK
        elif attr == 'src' and _HTML_DATA_URL.match(value):
            tag[attr] = BLOCKED_LINK


def _clean_soup(html: str) -> Optional[BeautifulSoup]:
    if not html or not isinstance(html, str):
        return None

    try:
        soup = BeautifulSoup(html, 'html.parser')

        for tag in soup.find_all(DROPPED_TAGS):
            tag.decompose()

        for tag in soup.find_all(UNWRAPPED_TAGS):
            tag.unwrap()

        for tag in soup.find_all(True):
            for attr in list(tag.attrs):
                lower = attr.lower()
                if lower in DANGEROUS_ATTRS or lower.startswith('on'):
                    del tag[attr]
            _neutralize_links(tag)

        return soup
    except Exception as e:
        logger.warning(f"HTML sanitization failed: {str(e)}")
        return None


def sanitize_html(html: str) -> str:
    """
    Strip dangerous tags, event handlers and script links from HTML.

    Best effort for extracting media links, not a guarantee that the output
    is safe to render.
    """
    soup = _clean_soup(html)
    return str(soup) if soup is not None else ''


def extract_safe_urls(html: str) -> List[str]:
    """Collect http(s) src/href values that survive sanitization."""
    soup = _clean_soup(html)
    if soup is None:
        return []

    urls = []
    for tag in soup.find_all(True):
        for attr in ('src', 'href'):
            value = tag.get(attr)
            if not isinstance(value, str) or not value:
                continue
            safe = sanitize_url(value, allow_data_urls=True)
            if safe and safe.startswith('http'):
                urls.append(safe)
    return urls


# =============================================================================
# Content types
# =============================================================================

def is_safe_mime_type(mime_type: str) -> bool:
    if not mime_type:
        return False
    normalized = mime_type.lower().split(';')[0].strip()
    return normalized in SAFE_MEDIA_TYPES


def validate_content_type(content_type: str) -> ContentTypeResult:
    """
    Check that a Content-Type header names a safe media type.

    Returns:
        ContentTypeResult with the lowercased MIME type and charset, if any
    """
    if not content_type:
        return ContentTypeResult(safe=False)

    parts = [part.strip() for part in content_type.split(';')]
    mime_type = parts[0].lower()

    charset = None
    for part in parts[1:]:
        if part.lower().startswith('charset='):
            charset = part[len('charset='):].replace('"', '').replace("'", '')

    return ContentTypeResult(
        safe=is_safe_mime_type(mime_type),
        mime_type=mime_type,
        charset=charset,
    )
