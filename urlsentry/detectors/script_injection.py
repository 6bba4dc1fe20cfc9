"""Script injection (XSS) detector."""
import re
from typing import List, Optional

from urlsentry.detectors.base import BaseDetector, PatternRule
from urlsentry.models import ThreatInfo, ThreatTemplate, ThreatKind, Severity, MediaDimensions
from urlsentry.utils.url import safe_unquote

SCRIPT_INJECTION = ThreatTemplate(
    ThreatKind.SCRIPT_INJECTION, Severity.CRITICAL,
    "URL contains potential script injection attempt",
    "Do not use this URL - it may execute malicious code",
)

# Quantifiers are bounded to keep matching linear on hostile input
XSS_PATTERNS = (
    r'<script',
    r'javascript:',
    r'on[a-z]{1,20}\s{0,10}=',
    r'data:text/html',
    r'vbscript:',
    r'expression\s{0,10}\(',
    r'url\s{0,10}\(\s{0,10}[\'"]?\s{0,10}javascript',
    r'<img[^>]{0,500}onerror',
    r'<svg[^>]{0,500}onload',
    r'<iframe',
    r'<object',
    r'<embed',
)

XSS_RULES = tuple(
    PatternRule(re.compile(pattern, re.IGNORECASE), SCRIPT_INJECTION)
    for pattern in XSS_PATTERNS
)


def detect_script_injection(url: str) -> Optional[ThreatInfo]:
    """Check the raw and once-decoded URL; the first matching pattern wins."""
    if not url:
        return None

    decoded = safe_unquote(url)
    for rule in XSS_RULES:
        threat = rule.apply(url) or rule.apply(decoded)
        if threat:
            return threat

    return None


class ScriptInjectionDetector(BaseDetector):
    """Detector for script payloads embedded in URLs."""

    def __init__(self):
        super().__init__(name="script_injection")

    def detect(self, url: str, dimensions: Optional[MediaDimensions] = None) -> List[ThreatInfo]:
        return self._as_list(detect_script_injection(url))
