"""Homograph (lookalike character) detector."""
import re
from typing import List, Optional

from urlsentry.detectors.base import BaseDetector
from urlsentry.models import ThreatInfo, ThreatTemplate, ThreatKind, Severity, MediaDimensions
from urlsentry.utils.url import extract_domain

# Unicode characters that look like ASCII letters
CONFUSABLES = {
    # Cyrillic
    'а': 'a',
    'е': 'e',
    'о': 'o',
    'р': 'p',
    'с': 'c',
    'у': 'y',
    'х': 'x',
    'і': 'i',
    'ј': 'j',
    'ѕ': 's',
    # Greek
    'α': 'a',
    'ε': 'e',
    'ι': 'i',
    'ο': 'o',
    'ρ': 'p',
    'υ': 'u',
    'χ': 'x',
    # Turkish dotless i, IPA
    'ı': 'i',
    'ɡ': 'g',
    'ɑ': 'a',
    # Armenian
    'բ': 'b',
    'դ': 'd',
    'զ': 'g',
    'հ': 'h',
    'ո': 'n',
    'օ': 'o',
    # Latin extended
    'ā': 'a',
    'ē': 'e',
    'ī': 'i',
    'ō': 'o',
    'ū': 'u',
}

MAX_REPORTED_CONFUSABLES = 3

_ASCII_LETTER = re.compile(r'[a-z]', re.IGNORECASE)
_NON_ASCII = re.compile(r'[^\x00-\x7f]')

CONFUSABLE_CHARS = ThreatTemplate(
    ThreatKind.HOMOGRAPH, Severity.MEDIUM,
    "Domain contains Unicode characters that look like ASCII: {found}",
    "This domain may be impersonating a legitimate website using lookalike characters",
)
MIXED_SCRIPT = ThreatTemplate(
    ThreatKind.HOMOGRAPH, Severity.LOW,
    "Domain contains mixed ASCII and non-ASCII characters",
    "Mixed-script domains can be used for phishing",
)
PUNYCODE = ThreatTemplate(
    ThreatKind.HOMOGRAPH, Severity.LOW,
    "Domain uses Punycode (internationalized domain name)",
    "Punycode domains can be used to create lookalike URLs",
)


def detect_homograph(domain: str) -> List[ThreatInfo]:
    """
    Look for lookalike characters in a hostname.

    The mixed-script check and the Punycode check are independent, so a
    hostname can produce up to two findings.

    Args:
        domain: Hostname (not a full URL)

    Returns:
        List of homograph threats
    """
    if not domain:
        return []

    threats = []

    if _ASCII_LETTER.search(domain) and _NON_ASCII.search(domain):
        found = [f"'{char}' looks like '{CONFUSABLES[char]}'" for char in domain if char in CONFUSABLES]
        if found:
            threats.append(CONFUSABLE_CHARS.build(
                domain, found=', '.join(found[:MAX_REPORTED_CONFUSABLES])
            ))
        else:
            threats.append(MIXED_SCRIPT.build(domain))

    if 'xn--' in domain.lower():
        threats.append(PUNYCODE.build(domain))

    return threats


class HomographDetector(BaseDetector):
    """Detector for confusable characters and Punycode in hostnames."""

    def __init__(self):
        super().__init__(name="homograph")

    def detect(self, url: str, dimensions: Optional[MediaDimensions] = None) -> List[ThreatInfo]:
        return detect_homograph(extract_domain(url))
