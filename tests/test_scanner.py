"""Tests for the security scanner."""

import json

import pytest

from urlsentry import create_scanner
from urlsentry.config import SecurityConfig, settings
from urlsentry.core.scanner import SecurityScanner, calculate_risk_score, determine_status
from urlsentry.exceptions import ConfigurationError
from urlsentry.models import (
    ThreatInfo, ThreatKind, Severity, SecurityStatus, SecurityMode, ScanOptions
)

STATUS_RANK = {
    SecurityStatus.SAFE: 0,
    SecurityStatus.QUARANTINED: 1,
    SecurityStatus.BLOCKED: 2,
}


def threat(severity, kind=ThreatKind.CUSTOM):
    return ThreatInfo(kind, severity, "test threat")


@pytest.fixture
def scanner():
    return SecurityScanner()


class TestScenarios:
    """End-to-end scans."""

    def test_javascript_url_balanced(self, scanner):
        result = scanner.scan("javascript:alert(1)")
        assert result.status in (SecurityStatus.BLOCKED, SecurityStatus.QUARANTINED)
        assert any(
            t.kind == ThreatKind.SCRIPT_INJECTION and t.severity == Severity.CRITICAL
            for t in result.threats
        )

    def test_blocked_domain_strict(self):
        scanner = SecurityScanner({"mode": "strict", "blocked_domains": ["malware.com"]})
        result = scanner.scan("https://malware.com/x.jpg")
        assert result.status == SecurityStatus.BLOCKED
        assert result.has_threat(ThreatKind.BLOCKED_DOMAIN)

    def test_tracking_pixel_dimensions(self, scanner):
        result = scanner.scan("https://example.com/img.jpg", {"dimensions": {"width": 1, "height": 1}})
        assert result.has_threat(ThreatKind.TRACKING_PIXEL)

    def test_clean_url_is_safe(self, scanner):
        result = scanner.scan("https://example.com/photo.jpg")
        assert result.status == SecurityStatus.SAFE
        assert result.threats == ()
        assert result.risk_score == 0
        assert scanner.is_safe("https://example.com/photo.jpg")

    def test_disabled_mode(self):
        result = create_scanner("disabled").scan("javascript:alert(1)")
        assert result.status == SecurityStatus.UNCHECKED
        assert result.threats == ()
        assert result.risk_score == 0

    def test_deterministic(self, scanner):
        first = scanner.scan("http://localhost/pixel.gif?token=abc")
        second = scanner.scan("http://localhost/pixel.gif?token=abc")
        assert first.status == second.status
        assert first.risk_score == second.risk_score
        assert first.threats == second.threats

    def test_to_dict_serializes(self, scanner):
        json.dumps(scanner.scan("javascript:alert(1)").to_dict())


class TestRiskScore:
    """Risk aggregation."""

    def test_no_threats(self):
        assert calculate_risk_score([]) == 0

    def test_single_low(self):
        assert calculate_risk_score([threat(Severity.LOW)]) == 25

    def test_capped_at_100(self):
        threats = [threat(Severity.CRITICAL, ThreatKind.SCRIPT_INJECTION)] * 3
        assert calculate_risk_score(threats) == 100

    def test_multiplier_rounds_half_up(self):
        assert calculate_risk_score([threat(Severity.LOW, ThreatKind.HOMOGRAPH)]) == 28

    def test_blocked_domain_multiplier(self):
        assert calculate_risk_score([threat(Severity.LOW, ThreatKind.BLOCKED_DOMAIN)]) == 33


class TestDetermineStatus:
    """Verdicts per mode."""

    @pytest.mark.parametrize("threats", [
        [threat(Severity.LOW)],
        [threat(Severity.MEDIUM)],
        [threat(Severity.LOW), threat(Severity.LOW)],
        [threat(Severity.MEDIUM), threat(Severity.LOW)],
        [threat(Severity.HIGH)],
        [threat(Severity.CRITICAL)],
        [threat(Severity.LOW, ThreatKind.HOMOGRAPH), threat(Severity.LOW, ThreatKind.HOMOGRAPH)],
    ])
    def test_mode_monotonicity(self, threats):
        risk = calculate_risk_score(threats)
        strict = determine_status(threats, risk, SecurityMode.STRICT)
        balanced = determine_status(threats, risk, SecurityMode.BALANCED)
        permissive = determine_status(threats, risk, SecurityMode.PERMISSIVE)
        assert STATUS_RANK[strict] >= STATUS_RANK[balanced] >= STATUS_RANK[permissive]

    @pytest.mark.parametrize("mode", list(SecurityMode))
    def test_no_threats_is_safe(self, mode):
        assert determine_status([], 0, mode) == SecurityStatus.SAFE

    def test_strict_quarantines_low_risk(self):
        assert determine_status([threat(Severity.LOW)], 25, SecurityMode.STRICT) == SecurityStatus.QUARANTINED

    def test_balanced_thresholds(self):
        assert determine_status([threat(Severity.LOW)], 25, SecurityMode.BALANCED) == SecurityStatus.SAFE
        assert determine_status([threat(Severity.MEDIUM)], 50, SecurityMode.BALANCED) == SecurityStatus.QUARANTINED
        assert determine_status([threat(Severity.HIGH)], 75, SecurityMode.BALANCED) == SecurityStatus.BLOCKED

    def test_permissive_blocks_only_critical_high_risk(self):
        assert determine_status([threat(Severity.CRITICAL)], 100, SecurityMode.PERMISSIVE) == SecurityStatus.BLOCKED
        assert determine_status([threat(Severity.CRITICAL)], 75, SecurityMode.PERMISSIVE) == SecurityStatus.SAFE
        assert determine_status([threat(Severity.HIGH)], 75, SecurityMode.PERMISSIVE) == SecurityStatus.QUARANTINED


class TestPipeline:
    """Step ordering and short-circuits."""

    def test_strict_stops_after_invalid_validation(self):
        result = create_scanner("paranoid").scan("javascript:alert(1)")
        assert result.status == SecurityStatus.BLOCKED
        assert len(result.threats) == 1

    def test_balanced_blocklist_hit_skips_detectors(self):
        scanner = SecurityScanner({"blocked_domains": ["evil.tk"]})
        result = scanner.scan("https://evil.tk/")
        assert result.status == SecurityStatus.BLOCKED
        assert [t.kind for t in result.threats] == [ThreatKind.BLOCKED_DOMAIN]

    def test_permissive_blocklist_hit_continues(self):
        scanner = SecurityScanner({"mode": "permissive", "blocked_domains": ["evil.tk"]})
        result = scanner.scan("https://evil.tk/")
        assert result.status == SecurityStatus.QUARANTINED
        assert [t.kind for t in result.threats] == [ThreatKind.BLOCKED_DOMAIN, ThreatKind.SUSPICIOUS_TLD]

    def test_localhost_is_quarantined(self, scanner):
        result = scanner.scan("http://localhost/x.jpg")
        assert result.status == SecurityStatus.QUARANTINED
        assert result.risk_score == 50

    def test_paranoid_flags_plain_http(self):
        result = create_scanner("paranoid").scan("http://example.com/photo.jpg")
        assert result.status == SecurityStatus.QUARANTINED
        assert [t.kind for t in result.threats] == [ThreatKind.SUSPICIOUS_REDIRECT]

    def test_skip_blocklist(self):
        scanner = SecurityScanner({"blocked_domains": ["evil.tk"]})
        result = scanner.scan("https://evil.tk/", {"skip_blocklist": True})
        assert [t.kind for t in result.threats] == [ThreatKind.SUSPICIOUS_TLD]
        assert result.status == SecurityStatus.SAFE

    def test_skip_threats(self, scanner):
        assert scanner.scan("https://example.tk/", ScanOptions(skip_threats=True)).threats == ()

    def test_skip_validation(self, scanner):
        assert scanner.scan("http://localhost/x.jpg", {"skip_validation": True}).threats == ()

    def test_unknown_option_raises(self, scanner):
        with pytest.raises(ConfigurationError):
            scanner.scan("https://example.com/", {"skip_everything": True})


class TestQuickChecks:
    """is_blocked, validate_url and check_blocklists."""

    def test_allowlist_precedence(self):
        scanner = SecurityScanner({"blocked_domains": ["evil.com"], "allowed_domains": ["evil.com"]})
        assert not scanner.is_blocked("https://evil.com/")
        assert scanner.check_blocklists("https://evil.com/") is None

    def test_blocklist_hit(self):
        scanner = SecurityScanner({"blocked_domains": ["evil.com"]})
        assert scanner.is_blocked("https://cdn.evil.com/a.png")
        assert scanner.check_blocklists("https://cdn.evil.com/a.png").kind == ThreatKind.BLOCKED_DOMAIN

    def test_private_target_is_a_validation_finding_not_a_blocklist_hit(self):
        scanner = SecurityScanner()
        assert scanner.check_blocklists("http://192.168.1.1/") is None
        threats = scanner.validate_url("http://192.168.1.1/").threats
        assert [t.kind for t in threats] == [ThreatKind.PRIVATE_IP]

    def test_script_injection_depends_on_mode(self):
        url = "https://example.com/?q=<script>alert(1)</script>"
        assert SecurityScanner().is_blocked(url)
        assert not SecurityScanner({"mode": "permissive"}).is_blocked(url)

    def test_disabled_never_blocks(self):
        scanner = SecurityScanner({"mode": "disabled", "blocked_domains": ["evil.com"]})
        assert not scanner.is_blocked("https://evil.com/")

    def test_validate_url_uses_effective_config(self):
        result = create_scanner("minimal").validate_url("http://10.0.0.1/")
        assert result.is_valid
        assert result.threats == ()


class TestBatch:
    """scan_batch."""

    URLS = ["https://a.example.com/", "javascript:alert(1)", "https://a.example.com/", "https://example.tk/"]

    def test_order_and_dedupe(self, scanner):
        results = scanner.scan_batch(self.URLS, max_workers=1)
        assert list(results) == ["https://a.example.com/", "javascript:alert(1)", "https://example.tk/"]
        assert results["javascript:alert(1)"].status == SecurityStatus.BLOCKED

    def test_parallel_matches_sequential(self, scanner):
        sequential = scanner.scan_batch(self.URLS, max_workers=1)
        parallel = scanner.scan_batch(self.URLS, max_workers=4)
        assert list(parallel) == list(sequential)
        for url, result in sequential.items():
            assert parallel[url].status == result.status
            assert parallel[url].risk_score == result.risk_score

    def test_options_apply_to_every_url(self, scanner):
        results = scanner.scan_batch(self.URLS, {"skip_threats": True, "skip_validation": True})
        assert all(result.threats == () for result in results.values())

    def test_empty(self, scanner):
        assert scanner.scan_batch([]) == {}


class TestConfiguration:
    """Presets, reconfiguration and sanitization settings."""

    def test_default_config(self, scanner):
        assert scanner.get_config() == SecurityConfig()

    def test_update_config(self, scanner):
        scanner.update_config({"mode": "strict", "validation": {"require_https": True}})
        config = scanner.get_config()
        assert config.mode == SecurityMode.STRICT
        assert config.validation.require_https is True
        assert config.validation.max_url_length == 8192

    def test_update_config_rejects_unknown_key(self, scanner):
        with pytest.raises(ConfigurationError):
            scanner.update_config({"nope": 1})
        assert scanner.get_config() == SecurityConfig()

    def test_add_blocked_entries(self, scanner):
        scanner.add_blocked_domains(["evil.com"])
        scanner.add_blocked_ips(["10.0.0.0/8"])
        scanner.add_blocked_patterns([r"\.exe$"])
        assert scanner.is_blocked("https://evil.com/")
        assert scanner.is_blocked("http://10.1.1.1/")
        assert scanner.is_blocked("https://example.com/setup.exe")
        assert scanner.get_config().blocked_domains == ("evil.com",)

    def test_instance_config_with_lists_and_string_mode(self):
        scanner = SecurityScanner(SecurityConfig(mode="strict", blocked_domains=["a.com"]))
        scanner.add_blocked_domains(["b.com"])
        assert scanner.get_config().mode == SecurityMode.STRICT
        assert scanner.get_config().blocked_domains == ("a.com", "b.com")
        assert scanner.is_blocked("https://a.com/")
        assert scanner.is_blocked("https://b.com/")

    def test_reconfiguration_replaces_blocklist(self, scanner):
        before = scanner.blocklist
        scanner.add_blocked_domains(["evil.com"])
        assert scanner.blocklist is not before
        assert not before.is_blocked("https://evil.com/").blocked

    def test_from_preset_with_overrides(self):
        scanner = SecurityScanner.from_preset("paranoid", {"blocked_domains": ["x.com"]})
        config = scanner.get_config()
        assert config.mode == SecurityMode.STRICT
        assert config.blocked_domains == ("x.com",)

    def test_create_scanner_overrides(self):
        scanner = create_scanner("balanced", blocked_domains=["x.com"])
        assert scanner.is_blocked("https://x.com/")

    def test_create_scanner_default_preset(self, monkeypatch):
        monkeypatch.setattr(settings, "default_preset", "minimal")
        assert create_scanner().get_config().mode == SecurityMode.PERMISSIVE

    def test_unknown_preset(self):
        with pytest.raises(ConfigurationError):
            create_scanner("extreme")

    def test_sanitize_url_follows_strip_tracking(self):
        url = "https://example.com/?utm_source=x&id=1"
        assert create_scanner("minimal").sanitize_url(url) == url
        assert create_scanner("balanced").sanitize_url(url) == "https://example.com/?id=1"

    def test_sanitize_url_follows_data_url_setting(self):
        url = "data:image/png;base64,AAAA"
        assert create_scanner("balanced").sanitize_url(url) is None
        assert create_scanner("minimal").sanitize_url(url) == url

    def test_sanitize_helpers(self, scanner):
        assert scanner.sanitize_filename("CON.txt") == "_CON.txt"
        assert scanner.sanitize_html("<b onclick='x()'>hi</b>") == "<b>hi</b>"
