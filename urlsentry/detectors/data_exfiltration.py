"""Data exfiltration detector."""
import re
from typing import List, Optional, Set, Tuple

from urlsentry.detectors.base import BaseDetector
from urlsentry.models import ThreatInfo, ThreatKind, Severity, MediaDimensions
from urlsentry.utils.url import parse_url, query_params

MAX_QUERY_LENGTH = 500
MAX_PARAM_VALUE_LENGTH = 200

BASE64_RUN = re.compile(r'[A-Za-z0-9+/]{50,}={0,2}')

# Parameter names that commonly carry credentials or session data
SUSPICIOUS_PARAMS = frozenset([
    'data', 'payload', 'token', 'session', 'auth', 'key', 'secret',
    'password', 'pw', 'pass', 'user', 'email', 'cookie', 'creds',
    'credentials',
])


def _find_issues(query: str, params) -> Tuple[List[str], Set[str]]:
    """Issue descriptions plus the distinct categories they fall in."""
    issues = []
    categories = set()

    if len(query) > MAX_QUERY_LENGTH:
        issues.append(f"unusually long query string ({len(query)} chars)")
        categories.add("long_query")

    if BASE64_RUN.search(query):
        issues.append("contains base64-like encoded data")
        categories.add("base64")

    suspicious = [name for name, _ in params if name.lower() in SUSPICIOUS_PARAMS]
    if suspicious:
        issues.append(f"suspicious parameters: {', '.join(suspicious)}")
        categories.add("suspicious_name")

    for name, value in params:
        if len(value) > MAX_PARAM_VALUE_LENGTH:
            issues.append(f"parameter '{name}' has unusually long value")
            categories.add("long_value")

    return issues, categories


def detect_data_exfiltration(url: str) -> Optional[ThreatInfo]:
    """
    Inspect the query string for signs of smuggled data.

    All issues found are folded into one threat: medium for a single kind of
    issue, high when two or more kinds fired.
    """
    parsed = parse_url(url)
    if not parsed or not parsed.query:
        return None

    issues, categories = _find_issues(parsed.query, query_params(url))
    if not issues:
        return None

    return ThreatInfo(
        kind=ThreatKind.DATA_EXFIL,
        severity=Severity.HIGH if len(categories) > 1 else Severity.MEDIUM,
        description=f"URL may contain exfiltrated data: {'; '.join(issues)}",
        recommendation="This URL may be sending sensitive data to an external server",
    )


class DataExfiltrationDetector(BaseDetector):
    """Detector for credentials or encoded payloads in query strings."""

    def __init__(self):
        super().__init__(name="data_exfiltration")

    def detect(self, url: str, dimensions: Optional[MediaDimensions] = None) -> List[ThreatInfo]:
        return self._as_list(detect_data_exfiltration(url))
