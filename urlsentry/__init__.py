"""URL security assessment engine."""
from typing import Optional

from urlsentry.config import (
    SecurityConfig, ValidationConfig, ThreatDetectionConfig, BlocklistConfig,
    BuiltInBlocklists, PRESETS, get_preset, settings
)
from urlsentry.core.blocklist import (
    BlocklistManager, compile_blocklist, check_blocklist, is_suspicious_tld,
    get_blocklist_threat
)
from urlsentry.core.sanitizer import (
    sanitize_url, sanitize_filename, sanitize_html, strip_tracking_params,
    extract_safe_urls, is_safe_mime_type, validate_content_type
)
from urlsentry.core.scanner import SecurityScanner, calculate_risk_score, determine_status
from urlsentry.core.validator import validate_url, is_valid_url, get_validation_checks
from urlsentry.detectors.dispatcher import detect_threats
from urlsentry.exceptions import UrlSentryError, ConfigurationError
from urlsentry.models import (
    ThreatInfo, ThreatKind, Severity, SecurityStatus, SecurityMode,
    SecurityAssessment, ValidationResult, BlocklistCheckResult,
    ContentTypeResult, MediaDimensions, ScanOptions
)
from urlsentry.utils.logger import get_logger

logger = get_logger(__name__)

__version__ = "1.0.0"


def create_scanner(preset: Optional[str] = None, **overrides) -> SecurityScanner:
    """
    Create a scanner from a preset.

    Args:
        preset: Preset name; defaults to the SECURITY_PRESET setting
        **overrides: SecurityConfig fields to override (nested dicts merge)

    Returns:
        Configured SecurityScanner
    """
    name = preset or settings.default_preset
    logger.debug(f"Creating scanner from preset '{name}'")
    return SecurityScanner.from_preset(name, overrides or None)
