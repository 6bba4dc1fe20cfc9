"""Security scanner: runs validation, blocklist and threat detection."""
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import List, Dict, Optional, Iterable, Mapping, Union, Callable, Sequence

from urlsentry.config import (
    SecurityConfig, ConfigInput, build_security_config, merge_config,
    get_preset, settings
)
from urlsentry.core.blocklist import BlocklistManager, get_blocklist_threat
from urlsentry.core.sanitizer import sanitize_url, sanitize_filename, sanitize_html
from urlsentry.core.validator import URLValidator
from urlsentry.detectors.dispatcher import ThreatDetector
from urlsentry.detectors.script_injection import detect_script_injection
from urlsentry.models import (
    ThreatInfo, Severity, SecurityStatus, SecurityMode, SecurityAssessment,
    ValidationResult, ScanOptions, MediaDimensions, SEVERITY_WEIGHTS,
    THREAT_TYPE_MULTIPLIERS, unchecked_assessment
)
from urlsentry.utils.logger import get_logger

logger = get_logger(__name__)

OptionsInput = Union[ScanOptions, Mapping, None]


def calculate_risk_score(threats: Sequence[ThreatInfo]) -> int:
    """
    Aggregate threats into a 0-100 risk score.

    Each threat weighs its severity weight times its kind multiplier; the
    sum is rounded half-up and capped at 100.
    """
    if not threats:
        return 0

    total = 0.0
    for threat in threats:
        total += SEVERITY_WEIGHTS[threat.severity] * THREAT_TYPE_MULTIPLIERS.get(threat.kind, 1.0)

    return min(100, int(math.floor(total + 0.5)))


def determine_status(threats: Sequence[ThreatInfo], risk_score: int, mode: SecurityMode) -> SecurityStatus:
    """Map threats and risk score to a verdict under the given mode."""
    if not threats:
        return SecurityStatus.SAFE

    has_critical = any(t.severity == Severity.CRITICAL for t in threats)
    has_high = any(t.severity == Severity.HIGH for t in threats)

    if mode == SecurityMode.STRICT:
        if has_critical or has_high or risk_score > 25:
            return SecurityStatus.BLOCKED
        return SecurityStatus.QUARANTINED

    if mode == SecurityMode.BALANCED:
        if has_critical or has_high or risk_score > 50:
            return SecurityStatus.BLOCKED
        if risk_score > 25:
            return SecurityStatus.QUARANTINED
        return SecurityStatus.SAFE

    if mode == SecurityMode.PERMISSIVE:
        if has_critical and risk_score > 75:
            return SecurityStatus.BLOCKED
        if has_high:
            return SecurityStatus.QUARANTINED
        return SecurityStatus.SAFE

    return SecurityStatus.UNCHECKED


def _scan_options(options: OptionsInput) -> ScanOptions:
    options = merge_config(ScanOptions(), options)
    if isinstance(options.dimensions, Mapping):
        options = replace(options, dimensions=merge_config(MediaDimensions(), options.dimensions))
    return options


@dataclass(frozen=True)
class _ScannerState:
    """Everything one scan reads, swapped as a unit on reconfiguration."""
    config: SecurityConfig
    blocklist: BlocklistManager
    validator: URLValidator
    detector: ThreatDetector


class SecurityScanner:
    """
    URL security scanner.

    Scans read one immutable state snapshot, so they can run concurrently
    with each other and with reconfiguration.
    """

    def __init__(self, config: ConfigInput = None):
        """
        Initialize scanner.

        Args:
            config: SecurityConfig, dict of overrides on the defaults, or None
        """
        self._lock = threading.Lock()
        self._state = self._build_state(build_security_config(config))
        logger.info(
            f"Security scanner initialized (mode={self._state.config.mode.value}, "
            f"blocklist={self._state.blocklist.get_stats()})"
        )

    @classmethod
    def from_preset(cls, name: str, overrides: ConfigInput = None) -> "SecurityScanner":
        """Create a scanner from a named preset plus optional overrides."""
        return cls(build_security_config(overrides, base=get_preset(name)))

    @staticmethod
    def _build_state(config: SecurityConfig) -> _ScannerState:
        blocklist = BlocklistManager(
            config.to_blocklist_config(),
            allowed_domains=config.allowed_domains,
            allowed_patterns=config.allowed_patterns,
        )
        return _ScannerState(
            config=config,
            blocklist=blocklist,
            validator=URLValidator(config.effective_validation),
            detector=ThreatDetector(config.threat_detection),
        )

    # =========================================================================
    # Scanning
    # =========================================================================

    def scan(self, url: str, options: OptionsInput = None) -> SecurityAssessment:
        """
        Perform a full security assessment of a URL.

        Args:
            url: URL to scan
            options: ScanOptions or dict (dimensions, skip_validation,
                skip_blocklist, skip_threats)

        Returns:
            SecurityAssessment
        """
        return self._scan(self._state, url, _scan_options(options))

    def _scan(self, state: _ScannerState, url: str, options: ScanOptions) -> SecurityAssessment:
        mode = state.config.mode
        if mode == SecurityMode.DISABLED:
            return unchecked_assessment()

        threats: List[ThreatInfo] = []

        # Step 1: structural validation
        if not options.skip_validation:
            validation = state.validator.validate(url)
            threats.extend(validation.threats)
            if mode == SecurityMode.STRICT and not validation.is_valid:
                return self._create_assessment(url, threats, mode, SecurityStatus.BLOCKED)

        # Step 2: blocklists
        if not options.skip_blocklist:
            blocklist_threat = get_blocklist_threat(state.blocklist.is_blocked(url), url)
            if blocklist_threat:
                threats.append(blocklist_threat)
                if mode in (SecurityMode.STRICT, SecurityMode.BALANCED):
                    return self._create_assessment(url, threats, mode, SecurityStatus.BLOCKED)

        # Step 3: threat detectors
        if not options.skip_threats:
            threats.extend(state.detector.detect(url, options.dimensions))

        return self._create_assessment(url, threats, mode)

    @staticmethod
    def _create_assessment(
        url: str,
        threats: List[ThreatInfo],
        mode: SecurityMode,
        forced_status: Optional[SecurityStatus] = None
    ) -> SecurityAssessment:
        risk_score = calculate_risk_score(threats)
        status = forced_status or determine_status(threats, risk_score, mode)

        logger.debug(
            f"Scanned {url[:50]}: {status.value} (risk={risk_score}, threats={len(threats)})"
        )

        return SecurityAssessment(status=status, threats=tuple(threats), risk_score=risk_score)

    def scan_batch(
        self,
        urls: Iterable[str],
        options: OptionsInput = None,
        max_workers: Optional[int] = None
    ) -> Dict[str, SecurityAssessment]:
        """
        Scan several URLs independently.

        Args:
            urls: URLs to scan (duplicates are scanned once)
            options: Options applied to every scan
            max_workers: Thread count; 1 or less scans sequentially.
                Defaults to the SCAN_MAX_WORKERS setting.

        Returns:
            Dictionary mapping each input URL to its assessment, in input order
        """
        state = self._state
        scan_options = _scan_options(options)
        unique_urls = list(dict.fromkeys(urls))
        workers = settings.max_workers if max_workers is None else max_workers

        def scan_one(url: str) -> SecurityAssessment:
            return self._scan(state, url, scan_options)

        if workers <= 1 or len(unique_urls) <= 1:
            return {url: scan_one(url) for url in unique_urls}

        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(scan_one, unique_urls))
        return dict(zip(unique_urls, results))

    def is_blocked(self, url: str) -> bool:
        """Quick check: blocklist hit, or script injection outside permissive mode."""
        state = self._state
        mode = state.config.mode
        if mode == SecurityMode.DISABLED:
            return False

        if state.blocklist.is_blocked(url).blocked:
            return True

        return mode != SecurityMode.PERMISSIVE and detect_script_injection(url) is not None

    def is_safe(self, url: str) -> bool:
        return self.scan(url).status == SecurityStatus.SAFE

    def validate_url(self, url: str) -> ValidationResult:
        return self._state.validator.validate(url)

    def check_blocklists(self, url: str) -> Optional[ThreatInfo]:
        """Blocklist threat for a URL, or None when it is not blocked."""
        return get_blocklist_threat(self._state.blocklist.is_blocked(url), url)

    # =========================================================================
    # Sanitization
    # =========================================================================

    def sanitize_url(self, url: str) -> Optional[str]:
        """Sanitize a URL using this scanner's data-URL, tracking and length settings."""
        config = self._state.config
        return sanitize_url(
            url,
            allow_data_urls=config.effective_validation.allow_data_urls,
            allow_javascript_urls=False,
            strip_tracking=config.strip_tracking,
            max_length=config.validation.max_url_length,
        )

    def sanitize_filename(self, filename: str) -> str:
        return sanitize_filename(filename)

    def sanitize_html(self, html: str) -> str:
        return sanitize_html(html)

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def blocklist(self) -> BlocklistManager:
        return self._state.blocklist

    def get_config(self) -> SecurityConfig:
        return self._state.config

    def _reconfigure(self, change: Callable[[SecurityConfig], SecurityConfig]) -> None:
        with self._lock:
            config = change(self._state.config)
            self._state = self._build_state(config)
        logger.info(
            f"Scanner reconfigured (mode={config.mode.value}, "
            f"blocklist={self._state.blocklist.get_stats()})"
        )

    def update_config(self, updates: ConfigInput) -> None:
        """
        Merge configuration updates and rebuild the blocklist.

        Raises:
            ConfigurationError: If updates name an unknown option or mode
        """
        self._reconfigure(lambda config: merge_config(config, updates))

    def add_blocked_domains(self, domains: Iterable[str]) -> None:
        domains = tuple(domains)
        self._reconfigure(lambda config: replace(
            config, blocked_domains=config.blocked_domains + domains
        ))

    def add_blocked_ips(self, ips: Iterable[str]) -> None:
        ips = tuple(ips)
        self._reconfigure(lambda config: replace(config, blocked_ips=config.blocked_ips + ips))

    def add_blocked_patterns(self, patterns: Iterable[str]) -> None:
        patterns = tuple(patterns)
        self._reconfigure(lambda config: replace(
            config, blocked_patterns=config.blocked_patterns + patterns
        ))
