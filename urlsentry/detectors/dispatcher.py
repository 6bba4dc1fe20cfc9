"""Runs the enabled threat detectors over a URL."""
from typing import List, Optional, Tuple

from urlsentry.config import ThreatDetectionConfig
from urlsentry.detectors.base import BaseDetector
from urlsentry.detectors.data_exfiltration import DataExfiltrationDetector
from urlsentry.detectors.homograph import HomographDetector
from urlsentry.detectors.obfuscation import ObfuscationDetector
from urlsentry.detectors.script_injection import ScriptInjectionDetector
from urlsentry.detectors.suspicious_tld import SuspiciousTldDetector
from urlsentry.detectors.tracking_pixel import TrackingPixelDetector
from urlsentry.models import ThreatInfo, MediaDimensions


class ThreatDetector:
    """Ordered set of detectors selected by a ThreatDetectionConfig."""

    def __init__(self, config: Optional[ThreatDetectionConfig] = None):
        self.config = config or ThreatDetectionConfig()
        self.detectors = self._build_detectors(self.config)

    @staticmethod
    def _build_detectors(config: ThreatDetectionConfig) -> Tuple[BaseDetector, ...]:
        # Script injection first: it is the critical signal
        candidates = (
            (config.script_injection, ScriptInjectionDetector),
            (config.homograph_attacks, HomographDetector),
            (config.obfuscated_urls, ObfuscationDetector),
            (config.suspicious_tlds, lambda: SuspiciousTldDetector(config.suspicious_tld_list)),
            (config.tracking_pixels, TrackingPixelDetector),
            (config.data_exfiltration, DataExfiltrationDetector),
        )
        return tuple(factory() for enabled, factory in candidates if enabled)

    def detect(self, url: str, dimensions: Optional[MediaDimensions] = None) -> List[ThreatInfo]:
        """
        Run every enabled detector and concatenate the findings.

        Args:
            url: URL to analyze
            dimensions: Known media dimensions, if any

        Returns:
            All threats found, in detector order
        """
        threats: List[ThreatInfo] = []
        for detector in self.detectors:
            threats.extend(detector.safe_detect(url, dimensions))
        return threats


def detect_threats(
    url: str,
    config: Optional[ThreatDetectionConfig] = None,
    dimensions: Optional[MediaDimensions] = None
) -> List[ThreatInfo]:
    """Run all enabled threat detectors on a URL."""
    return ThreatDetector(config).detect(url, dimensions)
