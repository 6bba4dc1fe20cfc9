"""Tracking pixel detector."""
import re
from typing import List, Optional

from urlsentry.detectors.base import BaseDetector, PatternRule
from urlsentry.models import ThreatInfo, ThreatTemplate, ThreatKind, Severity, MediaDimensions

# Longer URLs skip the pattern checks
MAX_PATTERN_URL_LENGTH = 2048

PIXEL_DIMENSIONS = ThreatTemplate(
    ThreatKind.TRACKING_PIXEL, Severity.LOW,
    "Image is a tracking pixel ({width}x{height})",
    "This is likely a tracking image, not actual content",
)
PIXEL_PATTERN = ThreatTemplate(
    ThreatKind.TRACKING_PIXEL, Severity.LOW,
    "URL matches tracking pixel pattern",
    "This is likely a tracking image, not actual content",
)

TRACKING_PATTERNS = (
    r'pixel\.gif',
    r'pixel\.png',
    r'tracking\.gif',
    r'beacon\.gif',
    r'spacer\.gif',
    r'clear\.gif',
    r'1x1\.gif',
    r'transparent\.gif',
    r'\.gif\?[^#]{0,200}tracking',
    r'/pixel\?',
    r'/beacon\?',
    r'/track\?',
)

TRACKING_RULES = tuple(
    PatternRule(re.compile(pattern, re.IGNORECASE), PIXEL_PATTERN)
    for pattern in TRACKING_PATTERNS
)


def is_pixel_sized(dimensions: Optional[MediaDimensions]) -> bool:
    if dimensions is None or dimensions.width is None or dimensions.height is None:
        return False
    return dimensions.width <= 1 and dimensions.height <= 1


def detect_tracking_pixel(url: str, dimensions: Optional[MediaDimensions] = None) -> Optional[ThreatInfo]:
    """
    Detect tracking pixels by size or by well-known pixel URL shapes.

    Args:
        url: Media URL
        dimensions: Known width/height, if any

    Returns:
        ThreatInfo or None
    """
    if is_pixel_sized(dimensions):
        size = f"{dimensions.width}x{dimensions.height}"
        return PIXEL_DIMENSIONS.build(size, width=dimensions.width, height=dimensions.height)

    if not url or len(url) > MAX_PATTERN_URL_LENGTH:
        return None

    for rule in TRACKING_RULES:
        threat = rule.apply(url)
        if threat:
            return threat

    return None


class TrackingPixelDetector(BaseDetector):
    """Detector for 1x1 tracking images."""

    def __init__(self):
        super().__init__(name="tracking_pixel")

    def detect(self, url: str, dimensions: Optional[MediaDimensions] = None) -> List[ThreatInfo]:
        return self._as_list(detect_tracking_pixel(url, dimensions))
