"""Suspicious TLD detector."""
from typing import List, Optional, Iterable

from urlsentry.core.blocklist import is_suspicious_tld
from urlsentry.detectors.base import BaseDetector
from urlsentry.models import ThreatInfo, ThreatTemplate, ThreatKind, Severity, MediaDimensions
from urlsentry.utils.url import extract_tld

SUSPICIOUS_TLD = ThreatTemplate(
    ThreatKind.SUSPICIOUS_TLD, Severity.LOW,
    "Domain uses suspicious TLD: .{tld}",
    "This TLD is frequently used for malicious purposes",
)


def detect_suspicious_tld(url: str, additional_tlds: Optional[Iterable[str]] = None) -> Optional[ThreatInfo]:
    if not is_suspicious_tld(url, additional_tlds):
        return None
    tld = extract_tld(url)
    return SUSPICIOUS_TLD.build(f".{tld}", tld=tld)


class SuspiciousTldDetector(BaseDetector):
    """Detector for frequently abused top-level domains."""

    def __init__(self, additional_tlds: Iterable[str] = ()):
        super().__init__(name="suspicious_tld")
        self.additional_tlds = tuple(additional_tlds)

    def detect(self, url: str, dimensions: Optional[MediaDimensions] = None) -> List[ThreatInfo]:
        return self._as_list(detect_suspicious_tld(url, self.additional_tlds))
