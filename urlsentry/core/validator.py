"""Structural URL validation."""
from typing import List, Optional, Dict

from urlsentry.config import ValidationConfig
from urlsentry.models import (
    ThreatInfo, ThreatTemplate, ThreatKind, Severity, ValidationResult
)
from urlsentry.utils.url import (
    parse_url, extract_domain, count_query_params, count_redirects,
    is_data_url, is_blob_url, is_http, is_javascript_url,
    is_localhost, is_private_url, is_excessively_encoded
)

_DEFAULT_CONFIG = ValidationConfig()

JAVASCRIPT_PROTOCOL = ThreatTemplate(
    ThreatKind.SCRIPT_INJECTION, Severity.CRITICAL,
    "URL contains javascript: protocol which can execute arbitrary code",
    "Do not use this URL - it may execute malicious code",
)
DATA_URL_DISABLED = ThreatTemplate(
    ThreatKind.OBFUSCATED_URL, Severity.MEDIUM,
    "Data URLs are disabled in security configuration",
    "Use regular HTTP/HTTPS URLs instead",
)
BLOB_URL_DISABLED = ThreatTemplate(
    ThreatKind.OBFUSCATED_URL, Severity.MEDIUM,
    "Blob URLs are disabled in security configuration",
    "Use regular HTTP/HTTPS URLs instead",
)
INSECURE_HTTP = ThreatTemplate(
    ThreatKind.SUSPICIOUS_REDIRECT, Severity.LOW,
    "URL uses insecure HTTP protocol",
    "Use HTTPS URLs for better security",
)
URL_TOO_LONG = ThreatTemplate(
    ThreatKind.EXCESSIVE_PARAMS, Severity.MEDIUM,
    "URL exceeds maximum length of {limit} characters ({length} chars)",
    "Unusually long URLs may contain hidden data or tracking",
)
LOCALHOST_TARGET = ThreatTemplate(
    ThreatKind.PRIVATE_IP, Severity.MEDIUM,
    "URL points to localhost/loopback address",
    "Local addresses should not be used for external resources",
)
PRIVATE_IP_TARGET = ThreatTemplate(
    ThreatKind.PRIVATE_IP, Severity.MEDIUM,
    "URL points to a private/internal IP address",
    "Private IP addresses may indicate SSRF attempts or misconfiguration",
)
TOO_MANY_PARAMS = ThreatTemplate(
    ThreatKind.EXCESSIVE_PARAMS, Severity.LOW,
    "URL has {count} query parameters (max: {limit})",
    "Excessive query parameters may indicate tracking or data exfiltration",
)
EXCESSIVE_ENCODING = ThreatTemplate(
    ThreatKind.OBFUSCATED_URL, Severity.MEDIUM,
    "URL contains excessive URL encoding which may hide malicious content",
    "Heavily encoded URLs may be attempting to bypass security filters",
)
TOO_MANY_REDIRECTS = ThreatTemplate(
    ThreatKind.SUSPICIOUS_REDIRECT, Severity.MEDIUM,
    "URL contains {count} redirect levels (max: {limit})",
    "Multiple redirects may indicate tracking or phishing attempts",
)


def validate_protocol(url: str, config: Optional[ValidationConfig] = None) -> List[ThreatInfo]:
    """
    Check the URL scheme.

    javascript: is always critical. data: and blob: are flagged unless the
    matching allow flag is set; plain http is flagged only when HTTPS is
    required.
    """
    config = config or _DEFAULT_CONFIG

    if is_javascript_url(url):
        return [JAVASCRIPT_PROTOCOL.build("javascript:")]

    if is_data_url(url):
        return [] if config.allow_data_urls else [DATA_URL_DISABLED.build("data:")]

    if is_blob_url(url):
        return [] if config.allow_blob_urls else [BLOB_URL_DISABLED.build("blob:")]

    if config.require_https and is_http(url):
        return [INSECURE_HTTP.build("http://")]

    return []


def validate_length(url: str, config: Optional[ValidationConfig] = None) -> List[ThreatInfo]:
    config = config or _DEFAULT_CONFIG
    if config.max_url_length and len(url) > config.max_url_length:
        return [URL_TOO_LONG.build(
            f"length: {len(url)}", limit=config.max_url_length, length=len(url)
        )]
    return []


def validate_private_ip(url: str, config: Optional[ValidationConfig] = None) -> List[ThreatInfo]:
    """Flag URLs that target localhost or a private/reserved IPv4 address."""
    config = config or _DEFAULT_CONFIG
    if config.allow_private_ips:
        return []

    domain = extract_domain(url)
    if is_localhost(domain):
        if config.allow_localhost:
            return []
        return [LOCALHOST_TARGET.build(domain)]

    if is_private_url(url):
        return [PRIVATE_IP_TARGET.build(domain)]

    return []


def validate_query_params(url: str, config: Optional[ValidationConfig] = None) -> List[ThreatInfo]:
    config = config or _DEFAULT_CONFIG
    count = count_query_params(url)
    if config.max_query_params and count > config.max_query_params:
        return [TOO_MANY_PARAMS.build(
            f"params: {count}", count=count, limit=config.max_query_params
        )]
    return []


def validate_encoding(url: str, config: Optional[ValidationConfig] = None) -> List[ThreatInfo]:
    config = config or _DEFAULT_CONFIG
    if is_excessively_encoded(url, config.max_encoding_ratio):
        return [EXCESSIVE_ENCODING.build("excessive %XX encoding")]
    return []


def validate_redirects(url: str, config: Optional[ValidationConfig] = None) -> List[ThreatInfo]:
    config = config or _DEFAULT_CONFIG
    count = count_redirects(url)
    if config.max_redirects and count > config.max_redirects:
        return [TOO_MANY_REDIRECTS.build(
            f"redirects: {count}", count=count, limit=config.max_redirects
        )]
    return []


def validate_url(url: str, config: Optional[ValidationConfig] = None) -> ValidationResult:
    """
    Run every structural check against a URL.

    Args:
        url: URL to validate
        config: Validation rules (defaults when omitted)

    Returns:
        ValidationResult; is_valid is False only when a critical threat was
        found or the input could not be parsed at all
    """
    config = config or _DEFAULT_CONFIG

    if not url or not isinstance(url, str):
        return ValidationResult(is_valid=False)

    parsed = parse_url(url)
    if not parsed and not is_data_url(url) and not is_blob_url(url):
        return ValidationResult(is_valid=False)

    threats = validate_protocol(url, config)

    # A rejected data:/blob: scheme ends validation
    rejected_scheme = any(t.kind == ThreatKind.OBFUSCATED_URL for t in threats)
    if not rejected_scheme:
        threats.extend(validate_length(url, config))
        threats.extend(validate_private_ip(url, config))
        threats.extend(validate_query_params(url, config))
        threats.extend(validate_encoding(url, config))
        threats.extend(validate_redirects(url, config))

    has_critical = any(t.severity == Severity.CRITICAL for t in threats)

    return ValidationResult(
        is_valid=not has_critical,
        threats=tuple(threats),
        normalized_url=parsed.geturl() if parsed else url,
    )


def is_valid_url(url: str, config: Optional[ValidationConfig] = None) -> bool:
    """Quick check if a URL passes validation."""
    return validate_url(url, config).is_valid


def get_validation_checks(url: str, config: Optional[ValidationConfig] = None) -> Dict[str, List[str]]:
    """
    Name the checks a URL passes and fails.

    Returns:
        Dictionary with 'passed' and 'failed' lists of check names
    """
    passed: List[str] = []
    failed: List[str] = []

    def record(name: str, threats: List[ThreatInfo]) -> None:
        (failed if threats else passed).append(name)

    record('url-protocol', validate_protocol(url, config))
    record('url-length', validate_length(url, config))

    ip_threats = validate_private_ip(url, config)
    if not ip_threats:
        passed.extend(['private-ip', 'localhost'])
    elif any(is_localhost(t.matched_pattern or '') for t in ip_threats):
        failed.append('localhost')
    else:
        failed.append('private-ip')

    record('query-params', validate_query_params(url, config))
    record('redirect-chain', validate_redirects(url, config))

    return {'passed': passed, 'failed': failed}


class URLValidator:
    """URL validator bound to one ValidationConfig."""

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or _DEFAULT_CONFIG

    def validate(self, url: str) -> ValidationResult:
        return validate_url(url, self.config)

    def is_valid(self, url: str) -> bool:
        return is_valid_url(url, self.config)

    def checks(self, url: str) -> Dict[str, List[str]]:
        return get_validation_checks(url, self.config)
