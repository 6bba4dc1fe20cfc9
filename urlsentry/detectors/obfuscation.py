"""URL obfuscation detector."""
import math
import re
from typing import List, Optional

from urlsentry.detectors.base import BaseDetector, PatternRule
from urlsentry.models import ThreatInfo, ThreatTemplate, ThreatKind, Severity, MediaDimensions
from urlsentry.utils.url import (
    parse_url, extract_domain, count_encoded_chars, encoding_ratio,
    safe_unquote, is_url_shortener
)

ENCODING_RATIO_THRESHOLD = 0.3

HEAVY_ENCODING = ThreatTemplate(
    ThreatKind.OBFUSCATED_URL, Severity.MEDIUM,
    "URL is heavily encoded ({percent}% encoded characters)",
    "Heavily encoded URLs may be hiding malicious content",
)
DOUBLE_ENCODING = ThreatTemplate(
    ThreatKind.OBFUSCATED_URL, Severity.MEDIUM,
    "URL uses double encoding",
    "Double-encoded URLs may be bypassing security filters",
)
URL_SHORTENER = ThreatTemplate(
    ThreatKind.SUSPICIOUS_REDIRECT, Severity.LOW,
    "URL uses a URL shortening service",
    "URL shorteners hide the actual destination",
)

# Alternative IP notations, matched against the hostname
IP_NOTATION_RULES = (
    PatternRule(
        re.compile(r'^\d{9,10}$'),
        ThreatTemplate(
            ThreatKind.OBFUSCATED_URL, Severity.HIGH,
            "URL uses decimal IP address obfuscation",
            "Decimal IP addresses are often used to hide malicious destinations",
        ),
    ),
    PatternRule(
        re.compile(r'^0x[0-9a-f]{8}$', re.IGNORECASE),
        ThreatTemplate(
            ThreatKind.OBFUSCATED_URL, Severity.HIGH,
            "URL uses hexadecimal IP address obfuscation",
            "Hex IP addresses are often used to hide malicious destinations",
        ),
    ),
    PatternRule(
        re.compile(r'^0\d+\.0\d+\.0\d+\.0\d+$'),
        ThreatTemplate(
            ThreatKind.OBFUSCATED_URL, Severity.HIGH,
            "URL uses octal IP address obfuscation",
            "Octal IP addresses are often used to hide malicious destinations",
        ),
    ),
)


def _is_double_encoded(url: str) -> bool:
    decoded = safe_unquote(url)
    if decoded == url:
        return False
    double_decoded = safe_unquote(decoded)
    return double_decoded != decoded and double_decoded != url


def detect_obfuscation(url: str) -> List[ThreatInfo]:
    """
    Detect URL obfuscation techniques.

    Checks heavy percent-encoding, decimal/hex/octal IP hosts, double
    encoding and URL shorteners. Each technique found adds one threat.
    """
    if not url:
        return []

    threats = []

    ratio = encoding_ratio(url)
    if ratio > ENCODING_RATIO_THRESHOLD:
        threats.append(HEAVY_ENCODING.build(
            f"{count_encoded_chars(url)} encoded chars",
            percent=int(math.floor(ratio * 100 + 0.5)),
        ))

    parsed = parse_url(url)
    host = parsed.hostname if parsed else None
    if host:
        for rule in IP_NOTATION_RULES:
            if rule.regex.search(host):
                threats.append(rule.template.build(host))

    if _is_double_encoded(url):
        threats.append(DOUBLE_ENCODING.build())

    if is_url_shortener(url):
        threats.append(URL_SHORTENER.build(extract_domain(url)))

    return threats


class ObfuscationDetector(BaseDetector):
    """Detector for encoded, disguised and shortened URLs."""

    def __init__(self):
        super().__init__(name="obfuscation")

    def detect(self, url: str, dimensions: Optional[MediaDimensions] = None) -> List[ThreatInfo]:
        return detect_obfuscation(url)
