"""Security configuration and application settings."""
import os
import re
from typing import Optional, Tuple, Union, Mapping, Any, Dict
from dataclasses import dataclass, field, fields, replace, is_dataclass
from dotenv import load_dotenv

from urlsentry.exceptions import ConfigurationError
from urlsentry.models import SecurityMode

load_dotenv()


def _as_tuple(value: Any) -> Tuple:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        return (value,)
    return tuple(value)


def _freeze_fields(instance, names) -> None:
    """Store the named list fields of a frozen dataclass as tuples."""
    for name in names:
        object.__setattr__(instance, name, _as_tuple(getattr(instance, name)))


@dataclass(frozen=True)
class ValidationConfig:
    """Structural URL validation rules."""
    require_https: bool = False
    allow_data_urls: bool = False
    allow_blob_urls: bool = True
    allow_private_ips: bool = False
    allow_localhost: bool = False
    max_url_length: int = 2048
    max_query_params: int = 50
    max_redirects: int = 3
    max_encoding_ratio: float = 0.3


@dataclass(frozen=True)
class ThreatDetectionConfig:
    """Which threat detectors run."""
    homograph_attacks: bool = True
    suspicious_tlds: bool = True
    obfuscated_urls: bool = True
    tracking_pixels: bool = True
    data_exfiltration: bool = True
    script_injection: bool = True
    # Extra TLDs treated as suspicious on top of the built-in set
    suspicious_tld_list: Tuple[str, ...] = ()

    def __post_init__(self):
        _freeze_fields(self, ("suspicious_tld_list",))


@dataclass(frozen=True)
class BuiltInBlocklists:
    """Curated lists seeded into the blocklist at compile time."""
    malware: bool = False
    phishing: bool = False
    tracking: bool = False
    ads: bool = False
    cryptominers: bool = False


@dataclass(frozen=True)
class BlocklistConfig:
    """Input to blocklist compilation."""
    built_in: BuiltInBlocklists = field(default_factory=BuiltInBlocklists)
    domains: Tuple[str, ...] = ()
    ips: Tuple[str, ...] = ()
    ip_ranges: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()
    url_patterns: Tuple[Union[str, "re.Pattern"], ...] = ()

    def __post_init__(self):
        _freeze_fields(self, ("domains", "ips", "ip_ranges", "patterns", "url_patterns"))


@dataclass(frozen=True)
class SecurityConfig:
    """Scanner configuration: policy mode, sub-configs and block/allow lists."""
    mode: SecurityMode = SecurityMode.BALANCED
    threat_detection: ThreatDetectionConfig = field(default_factory=ThreatDetectionConfig)
    validation: ValidationConfig = field(default_factory=lambda: ValidationConfig(max_url_length=8192))
    blocked_domains: Tuple[str, ...] = ()
    blocked_ips: Tuple[str, ...] = ()
    blocked_patterns: Tuple[str, ...] = ()
    allowed_domains: Tuple[str, ...] = ()
    allowed_patterns: Tuple[str, ...] = ()
    builtin_blocklists: BuiltInBlocklists = field(default_factory=BuiltInBlocklists)
    allow_private_ips: bool = False
    allow_data_urls: bool = False
    strip_tracking: bool = True

    def __post_init__(self):
        object.__setattr__(self, "mode", parse_mode(self.mode))
        _freeze_fields(self, (
            "blocked_domains", "blocked_ips", "blocked_patterns",
            "allowed_domains", "allowed_patterns",
        ))

    @property
    def effective_validation(self) -> ValidationConfig:
        """Validation config with the top-level allow flags folded in."""
        changes = {}
        if self.allow_private_ips and not self.validation.allow_private_ips:
            changes["allow_private_ips"] = True
        if self.allow_data_urls and not self.validation.allow_data_urls:
            changes["allow_data_urls"] = True
        return replace(self.validation, **changes) if changes else self.validation

    def to_blocklist_config(self) -> BlocklistConfig:
        """Blocklist compilation input derived from this config."""
        return BlocklistConfig(
            built_in=self.builtin_blocklists,
            domains=self.blocked_domains,
            ips=self.blocked_ips,
            patterns=self.blocked_patterns,
        )


ConfigInput = Union[SecurityConfig, Mapping[str, Any], None]


def parse_mode(value: Union[str, SecurityMode]) -> SecurityMode:
    """Parse a security mode from its name."""
    if isinstance(value, SecurityMode):
        return value
    try:
        return SecurityMode(str(value).lower())
    except ValueError:
        valid = ", ".join(m.value for m in SecurityMode)
        raise ConfigurationError(f"Unknown security mode '{value}' (expected one of: {valid})")


def _coerce(current: Any, value: Any) -> Any:
    if isinstance(current, SecurityMode):
        return parse_mode(value)
    if isinstance(current, tuple):
        return _as_tuple(value)
    return value


def merge_config(base, updates):
    """
    Merge partial updates into a config dataclass, returning a new instance.

    Args:
        base: Config instance providing the defaults
        updates: Instance of the same type (replaces base), a mapping of
            field overrides (nested mappings merge field-by-field) or None

    Returns:
        New config instance

    Raises:
        ConfigurationError: If updates name an unknown field
    """
    if updates is None:
        return base
    if isinstance(updates, type(base)):
        return updates
    if not isinstance(updates, Mapping):
        raise ConfigurationError(
            f"Cannot merge {type(updates).__name__} into {type(base).__name__}"
        )

    known = {f.name for f in fields(base)}
    changes: Dict[str, Any] = {}
    for name, value in updates.items():
        if name not in known:
            raise ConfigurationError(f"Unknown option '{name}' for {type(base).__name__}")
        current = getattr(base, name)
        if is_dataclass(current):
            changes[name] = merge_config(current, value)
        else:
            changes[name] = _coerce(current, value)

    return replace(base, **changes)


def build_security_config(config: ConfigInput = None, base: Optional[SecurityConfig] = None) -> SecurityConfig:
    """Build a SecurityConfig from defaults (or base) plus overrides."""
    return merge_config(base or SecurityConfig(), config)


# Pre-built configurations for common use cases
PRESETS: Dict[str, SecurityConfig] = {
    # Maximum security: strict blocking, all checks enabled
    "paranoid": SecurityConfig(
        mode=SecurityMode.STRICT,
        validation=ValidationConfig(
            require_https=True,
            max_url_length=2048,
            max_query_params=20,
            max_redirects=1,
            max_encoding_ratio=0.2,
        ),
    ),
    # Quarantine suspicious items, common checks
    "balanced": SecurityConfig(
        mode=SecurityMode.BALANCED,
        validation=ValidationConfig(max_url_length=8192),
    ),
    # Basic checks only
    "minimal": SecurityConfig(
        mode=SecurityMode.PERMISSIVE,
        threat_detection=ThreatDetectionConfig(
            homograph_attacks=True,
            suspicious_tlds=False,
            obfuscated_urls=False,
            tracking_pixels=False,
            data_exfiltration=False,
            script_injection=True,
        ),
        validation=ValidationConfig(
            allow_data_urls=True,
            allow_private_ips=True,
            allow_localhost=True,
            max_url_length=16384,
            max_query_params=100,
            max_redirects=5,
            max_encoding_ratio=0.5,
        ),
        allow_private_ips=True,
        allow_data_urls=True,
        strip_tracking=False,
    ),
    "disabled": SecurityConfig(mode=SecurityMode.DISABLED),
}


def get_preset(name: str) -> SecurityConfig:
    """Look up a named preset."""
    try:
        return PRESETS[name.lower()]
    except (KeyError, AttributeError):
        valid = ", ".join(PRESETS)
        raise ConfigurationError(f"Unknown security preset '{name}' (expected one of: {valid})")


@dataclass
class Settings:
    """Process-level settings read from the environment."""
    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))

    # Scanner defaults
    default_preset: str = field(default_factory=lambda: os.getenv("SECURITY_PRESET", "balanced"))
    max_workers: int = field(default_factory=lambda: int(os.getenv("SCAN_MAX_WORKERS", "1")))


# Global settings instance
settings = Settings()
