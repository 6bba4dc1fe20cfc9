"""URL parsing helpers shared by the validator, blocklist and detectors."""
import re
from typing import Optional, List, Tuple
from urllib.parse import urlsplit, unquote, parse_qsl, SplitResult

import tldextract

# Bundled Public Suffix List snapshot only: no network fetch, no disk cache
_tld_extract = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())

_ABSOLUTE_URL = re.compile(r'^https?://', re.IGNORECASE)
_ENCODED_CHAR = re.compile(r'%[0-9A-Fa-f]{2}')
_IPV4 = re.compile(r'^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$', re.ASCII)
_WHITESPACE = re.compile(r'\s+')

# Schemes that must carry a host to be usable
_NETWORK_SCHEMES = {'http', 'https', 'ftp', 'ws', 'wss'}

_UINT32 = 0xFFFFFFFF


# =============================================================================
# Scheme checks
# =============================================================================

def is_absolute_url(url: str) -> bool:
    """Check if a string starts with http:// or https://."""
    if not url or not isinstance(url, str):
        return False
    return bool(_ABSOLUTE_URL.match(url))


def is_data_url(url: str) -> bool:
    if not url or not isinstance(url, str):
        return False
    return url[:5].lower() == 'data:'


def is_blob_url(url: str) -> bool:
    if not url or not isinstance(url, str):
        return False
    return url[:5].lower() == 'blob:'


def is_http(url: str) -> bool:
    """Check if a URL uses plain (non-TLS) HTTP."""
    if not url or not isinstance(url, str):
        return False
    return url.lower().startswith('http://')


def is_javascript_url(url: str) -> bool:
    """Check for a javascript: URL, ignoring case and embedded whitespace."""
    if not url or not isinstance(url, str):
        return False
    normalized = _WHITESPACE.sub('', url.strip().lower())
    return normalized.startswith('javascript:')


# =============================================================================
# Parsing
# =============================================================================

def parse_url(url: str) -> Optional[SplitResult]:
    """
    Parse an absolute URL.

    Returns:
        SplitResult, or None when the input has no scheme, a network
        scheme without a host, or cannot be split at all
    """
    if not url or not isinstance(url, str):
        return None

    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return None

    if not parsed.scheme:
        return None
    if parsed.scheme.lower() in _NETWORK_SCHEMES and not parsed.netloc:
        return None

    return parsed


def extract_domain(url: str) -> str:
    """Lowercase hostname of a URL, or '' when there is none."""
    if is_data_url(url):
        return ''
    parsed = parse_url(url)
    if not parsed:
        return ''
    return (parsed.hostname or '').lower()


def registered_domain(hostname: str) -> str:
    """
    Registered domain (eTLD+1) of a hostname.

    IP literals and single-label hosts are returned unchanged. Hosts under a
    suffix the Public Suffix List does not know fall back to their last two
    labels.
    """
    if not hostname:
        return ''
    hostname = hostname.lower().rstrip('.')
    if is_ipv4_address(hostname) or ':' in hostname:
        return hostname

    ext = _tld_extract(hostname)
    if ext.domain and ext.suffix:
        return f"{ext.domain}.{ext.suffix}"

    labels = hostname.split('.')
    if len(labels) < 2:
        return hostname
    return '.'.join(labels[-2:])


def extract_registered_domain(url: str) -> str:
    """e.g. 'https://www.example.co.uk/x' -> 'example.co.uk'."""
    return registered_domain(extract_domain(url))


def extract_tld(url: str) -> str:
    """
    Public suffix of a URL's host, e.g. 'co.uk' or 'com'.

    Falls back to the last label when the suffix is unknown.
    """
    domain = extract_domain(url).rstrip('.')
    if not domain:
        return ''
    if is_ipv4_address(domain) or ':' in domain:
        return ''

    suffix = _tld_extract(domain).suffix
    if suffix:
        return suffix
    return domain.split('.')[-1]


def extract_query_string(url: str) -> str:
    """Query string without the leading '?'."""
    parsed = parse_url(url)
    return parsed.query if parsed else ''


def query_params(url: str) -> List[Tuple[str, str]]:
    """Decoded (name, value) pairs of the query string, blanks kept."""
    query = extract_query_string(url)
    if not query:
        return []
    return parse_qsl(query, keep_blank_values=True)


def count_query_params(url: str) -> int:
    return len(query_params(url))


# =============================================================================
# IPv4 addresses and ranges
# =============================================================================

def ipv4_to_int(ip: str) -> Optional[int]:
    """Dotted-quad IPv4 address to an unsigned 32-bit integer."""
    if not ip:
        return None
    match = _IPV4.match(ip)
    if not match:
        return None

    result = 0
    for part in match.groups():
        octet = int(part)
        if octet > 255:
            return None
        result = (result << 8) | octet
    return result


def is_ipv4_address(value: str) -> bool:
    return ipv4_to_int(value) is not None


def parse_cidr(cidr: str) -> Optional[Tuple[int, int]]:
    """
    Parse CIDR notation into an inclusive integer range.

    A bare address is treated as a /32.

    Returns:
        (start, end) tuple, or None if the notation is invalid
    """
    if not cidr or not isinstance(cidr, str):
        return None

    address, sep, prefix_str = cidr.strip().partition('/')
    if not sep:
        prefix_str = '32'
    if not prefix_str.isdigit() or not prefix_str.isascii():
        return None

    prefix = int(prefix_str)
    if prefix > 32:
        return None

    ip = ipv4_to_int(address)
    if ip is None:
        return None

    mask = (_UINT32 << (32 - prefix)) & _UINT32 if prefix else 0
    start = ip & mask
    end = start | (~mask & _UINT32)
    return start, end


# Loopback, RFC1918, link-local, CGNAT, documentation/test, multicast, reserved
PRIVATE_IP_CIDRS = (
    '0.0.0.0/8',
    '10.0.0.0/8',
    '100.64.0.0/10',
    '127.0.0.0/8',
    '169.254.0.0/16',
    '172.16.0.0/12',
    '192.0.0.0/24',
    '192.0.2.0/24',
    '192.168.0.0/16',
    '198.18.0.0/15',
    '198.51.100.0/24',
    '203.0.113.0/24',
    '224.0.0.0/4',
    '240.0.0.0/4',
)

PRIVATE_IP_RANGES = tuple(parse_cidr(cidr) for cidr in PRIVATE_IP_CIDRS)


def is_private_ip(ip: str) -> bool:
    """Check if an IPv4 address is in a private or reserved range."""
    value = ipv4_to_int(ip)
    if value is None:
        return False
    return any(start <= value <= end for start, end in PRIVATE_IP_RANGES)


def is_localhost(hostname: str) -> bool:
    lower = (hostname or '').lower()
    return (
        lower == 'localhost'
        or lower == '127.0.0.1'
        or lower == '::1'
        or lower == '[::1]'
        or lower.endswith('.localhost')
    )


def is_private_url(url: str) -> bool:
    """Check if a URL targets localhost or a private IPv4 address."""
    domain = extract_domain(url)
    if not domain:
        return False
    return is_localhost(domain) or is_private_ip(domain)


# =============================================================================
# Encoding
# =============================================================================

def safe_unquote(value: str) -> str:
    """Percent-decode once; return the input unchanged if it is not valid UTF-8."""
    try:
        return unquote(value, errors='strict')
    except UnicodeDecodeError:
        return value


def count_encoded_chars(value: str) -> int:
    """Number of %XX sequences in a string."""
    return len(_ENCODED_CHAR.findall(value or ''))


def encoding_ratio(url: str) -> float:
    """Share of the URL taken up by %XX sequences."""
    if not url:
        return 0.0
    return count_encoded_chars(url) * 3 / len(url)


def is_excessively_encoded(url: str, threshold: float = 0.3) -> bool:
    return encoding_ratio(url) > threshold


# =============================================================================
# Embedded URLs and redirects
# =============================================================================

# Query parameters that commonly wrap another URL
EMBEDDED_URL_PARAMS = (
    'url',
    'src',
    'image',
    'img',
    'imgurl',
    'mediaurl',
    'iai',
    'orig',
    'original',
    'source',
    'ref',
    'target',
)

MAX_REDIRECT_HOPS = 10


def extract_embedded_url(url: str) -> Optional[str]:
    """Extract a URL wrapped in a known query parameter, if any."""
    params = {}
    for name, value in query_params(url):
        params.setdefault(name, value)

    for name in EMBEDDED_URL_PARAMS:
        value = params.get(name)
        if not value:
            continue
        if is_absolute_url(value):
            return value
        decoded = safe_unquote(value)
        if decoded != value and is_absolute_url(decoded):
            return decoded

    return None


def count_redirects(url: str) -> int:
    """Count nested wrapper URLs, following at most MAX_REDIRECT_HOPS hops."""
    count = 0
    current = url
    for _ in range(MAX_REDIRECT_HOPS):
        embedded = extract_embedded_url(current)
        if not embedded or embedded == current:
            break
        count += 1
        current = embedded
    return count


# =============================================================================
# URL shorteners
# =============================================================================

URL_SHORTENERS = frozenset([
    'bit.ly', 'bitly.com', 't.co', 'goo.gl', 'tinyurl.com', 'ow.ly', 'is.gd',
    'buff.ly', 'adf.ly', 'j.mp', 'tr.im', 'cli.gs', 'short.to', 'budurl.com',
    'ping.fm', 'post.ly', 'just.as', 'bkite.com', 'snipr.com', 'fic.kr',
    'loopt.us', 'doiop.com', 'short.ie', 'kl.am', 'wp.me', 'rubyurl.com',
    'om.ly', 'to.ly', 'bit.do', 'lnkd.in', 'db.tt', 'qr.ae', 'cur.lv',
    'ity.im', 'q.gs', 'po.st', 'bc.vc', 'twitthis.com', 'u.teleportd.com',
    'bzfd.it', 'waa.ai', 'tiny.pl', 'amzn.to', 'youtu.be', 'rb.gy',
    'cutt.ly', 'rebrand.ly', 'shorturl.at',
])


def is_url_shortener(url: str) -> bool:
    domain = extract_domain(url)
    if not domain:
        return False
    return domain in URL_SHORTENERS or registered_domain(domain) in URL_SHORTENERS
