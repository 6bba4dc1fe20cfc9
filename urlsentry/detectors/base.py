"""Base detector class."""
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from urlsentry.models import ThreatInfo, ThreatTemplate, MediaDimensions
from urlsentry.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PatternRule:
    """A regex paired with the threat it signals."""
    regex: "re.Pattern"
    template: ThreatTemplate

    def apply(self, text: str, **fmt) -> Optional[ThreatInfo]:
        if self.regex.search(text):
            return self.template.build(self.regex.pattern, **fmt)
        return None


class BaseDetector(ABC):
    """Base class for all threat detectors."""

    def __init__(self, name: str):
        """Initialize detector."""
        self.name = name

    @abstractmethod
    def detect(self, url: str, dimensions: Optional[MediaDimensions] = None) -> List[ThreatInfo]:
        """
        Perform detection.

        Args:
            url: URL to analyze
            dimensions: Known pixel dimensions of the media, if any

        Returns:
            List of threats found (empty when the URL looks clean)
        """
        pass

    @staticmethod
    def _as_list(threat: Optional[ThreatInfo]) -> List[ThreatInfo]:
        return [threat] if threat else []

    def safe_detect(self, url: str, dimensions: Optional[MediaDimensions] = None) -> List[ThreatInfo]:
        """
        Detection with error handling.

        A detector that raises contributes no findings instead of breaking
        the scan.
        """
        start_time = time.time()

        try:
            threats = self.detect(url, dimensions)
        except Exception as e:
            logger.warning(f"{self.name} detector failed for {url[:50]}: {str(e)}", exc_info=True)
            return []

        if threats:
            execution_time = time.time() - start_time
            logger.debug(
                f"{self.name} detector found {len(threats)} threat(s) in {execution_time:.4f}s"
            )
        return threats
