"""Data models and threat catalog."""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple
from datetime import datetime, timezone
from enum import Enum


class ThreatKind(Enum):
    """Kinds of threat a scan can report."""
    BLOCKED_DOMAIN = "blocked-domain"
    BLOCKED_IP = "blocked-ip"
    BLOCKED_PATTERN = "blocked-pattern"
    SUSPICIOUS_REDIRECT = "suspicious-redirect"
    KNOWN_MALWARE = "known-malware"
    PHISHING = "phishing"
    TRACKING_PIXEL = "tracking-pixel"
    DATA_EXFIL = "data-exfil"
    SCRIPT_INJECTION = "script-injection"
    PRIVATE_IP = "private-ip"
    SUSPICIOUS_TLD = "suspicious-tld"
    HOMOGRAPH = "homograph"
    EXCESSIVE_PARAMS = "excessive-params"
    OBFUSCATED_URL = "obfuscated-url"
    INVALID_PROTOCOL = "invalid-protocol"
    EXCESSIVE_ENCODING = "excessive-encoding"
    EXCESSIVE_REDIRECTS = "excessive-redirects"
    URL_TOO_LONG = "url-too-long"
    CUSTOM = "custom"


class Severity(Enum):
    """Threat severity, ordered low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class SecurityStatus(Enum):
    """Final verdict for a scanned URL."""
    SAFE = "safe"
    QUARANTINED = "quarantined"
    BLOCKED = "blocked"
    UNCHECKED = "unchecked"


class SecurityMode(Enum):
    """Scanner policy mode."""
    STRICT = "strict"
    BALANCED = "balanced"
    PERMISSIVE = "permissive"
    DISABLED = "disabled"


# Base weight per severity used for risk scoring
SEVERITY_WEIGHTS: Dict[Severity, int] = {
    Severity.CRITICAL: 100,
    Severity.HIGH: 75,
    Severity.MEDIUM: 50,
    Severity.LOW: 25,
}

# Kinds not listed here weigh 1.0
THREAT_TYPE_MULTIPLIERS: Dict[ThreatKind, float] = {
    ThreatKind.SCRIPT_INJECTION: 1.5,
    ThreatKind.BLOCKED_DOMAIN: 1.3,
    ThreatKind.BLOCKED_IP: 1.3,
    ThreatKind.DATA_EXFIL: 1.2,
    ThreatKind.HOMOGRAPH: 1.1,
}


@dataclass(frozen=True)
class ThreatInfo:
    """A single finding produced by a validator, blocklist or detector."""
    kind: ThreatKind
    severity: Severity
    description: str
    matched_pattern: Optional[str] = None
    recommendation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "description": self.description,
        }
        if self.matched_pattern is not None:
            data["matched_pattern"] = self.matched_pattern
        if self.recommendation is not None:
            data["recommendation"] = self.recommendation
        return data


@dataclass(frozen=True)
class ThreatTemplate:
    """Reusable shape of a threat; rule tables pair these with predicates."""
    kind: ThreatKind
    severity: Severity
    description: str
    recommendation: Optional[str] = None

    def build(self, matched_pattern: Optional[str] = None, **fmt) -> ThreatInfo:
        description = self.description.format(**fmt) if fmt else self.description
        return ThreatInfo(
            kind=self.kind,
            severity=self.severity,
            description=description,
            matched_pattern=matched_pattern,
            recommendation=self.recommendation,
        )


@dataclass(frozen=True)
class MediaDimensions:
    """Known pixel dimensions of a media item."""
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class ScanOptions:
    """Per-call scan options."""
    dimensions: Optional[MediaDimensions] = None
    skip_validation: bool = False
    skip_blocklist: bool = False
    skip_threats: bool = False


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of URL validation."""
    is_valid: bool
    threats: Tuple[ThreatInfo, ...] = ()
    normalized_url: Optional[str] = None


@dataclass(frozen=True)
class BlocklistCheckResult:
    """Outcome of a blocklist lookup."""
    blocked: bool
    matched_lists: Tuple[str, ...] = ()
    matched_pattern: Optional[str] = None


@dataclass(frozen=True)
class ContentTypeResult:
    """Outcome of Content-Type validation."""
    safe: bool
    mime_type: Optional[str] = None
    charset: Optional[str] = None


@dataclass(frozen=True)
class SecurityAssessment:
    """Complete security assessment of one URL."""
    status: SecurityStatus
    threats: Tuple[ThreatInfo, ...] = ()
    risk_score: int = 0
    scanned_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def highest_severity(self) -> Optional[Severity]:
        """Most severe threat found, if any."""
        if not self.threats:
            return None
        return max(t.severity for t in self.threats)

    def has_threat(self, kind: ThreatKind) -> bool:
        return any(t.kind == kind for t in self.threats)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "threats": [t.to_dict() for t in self.threats],
            "risk_score": self.risk_score,
            "scanned_at": self.scanned_at.isoformat(),
        }


def unchecked_assessment() -> SecurityAssessment:
    """Assessment returned when security checks are disabled."""
    return SecurityAssessment(status=SecurityStatus.UNCHECKED, threats=(), risk_score=0)
