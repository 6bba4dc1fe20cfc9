"""Blocklist compilation, lookup and the allow/block list manager."""
import re
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, List, Dict, Tuple, Iterable, Union, FrozenSet

from urlsentry.config import BlocklistConfig
from urlsentry.models import (
    ThreatInfo, ThreatKind, Severity, BlocklistCheckResult
)
from urlsentry.utils.logger import get_logger
from urlsentry.utils.url import (
    extract_domain, registered_domain, ipv4_to_int, parse_cidr
)

logger = get_logger(__name__)

PatternInput = Union[str, "re.Pattern"]


# =============================================================================
# Built-in curated lists
# =============================================================================

MALWARE_DOMAINS = frozenset([
    'malware-distribution.example',
    'dropper.malicious',
])

PHISHING_DOMAINS = frozenset([
    'appleid-apple.com',
    'facebook-login.com',
    'google-verify.com',
    'paypal-secure.com',
    'whatsapp-update.com',
    'instagram-confirm.com',
    'twitter-account.com',
    'amazon-verify.com',
])

TRACKING_DOMAINS = frozenset([
    'pixel.facebook.com',
    'pixel.admob.com',
    'tracking.pixel',
    'beacon.krxd.net',
    'pixel.quantserve.com',
    'pixel.mathtag.com',
    'secure-gl.imrworldwide.com',
    'b.scorecardresearch.com',
    'pixel.wp.com',
])

AD_DOMAINS = frozenset([
    'ads.example',
    'adserver.example',
])

CRYPTOMINER_DOMAINS = frozenset([
    'coin-hive.com',
    'coinhive.com',
    'jsecoin.com',
    'crypto-loot.com',
    'cryptoloot.pro',
    'minero.cc',
    'webmine.pro',
])

# Frequently abused TLDs
SUSPICIOUS_TLDS = frozenset([
    'tk', 'ml', 'ga', 'cf', 'gq', 'xyz', 'top', 'club', 'work', 'date',
    'racing', 'win', 'bid', 'stream', 'download', 'loan', 'men', 'click',
    'link', 'trade', 'party', 'science', 'review', 'country', 'kim',
    'cricket', 'webcam', 'faith', 'accountant',
])

_BUILT_IN_LISTS = (
    ('malware', MALWARE_DOMAINS),
    ('phishing', PHISHING_DOMAINS),
    ('tracking', TRACKING_DOMAINS),
    ('ads', AD_DOMAINS),
    ('cryptominers', CRYPTOMINER_DOMAINS),
)


# =============================================================================
# Compiled structure
# =============================================================================

class RuleKind(Enum):
    """Matcher variants; the value is the list name reported on a hit."""
    WILDCARD = "wildcard"
    IP_RANGE = "ip-range"
    URL_PATTERN = "url-pattern"


# Lookup order after the exact/registered domain set
_RULE_ORDER = {RuleKind.WILDCARD: 0, RuleKind.IP_RANGE: 1, RuleKind.URL_PATTERN: 2}

DOMAIN_EXACT = "domain-exact"
DOMAIN_REGISTERED = "domain-registered"


@dataclass(frozen=True)
class BlocklistRule:
    """One compiled wildcard, CIDR or URL-pattern matcher."""
    kind: RuleKind
    pattern: str
    regex: Optional["re.Pattern"] = None
    start: int = 0
    end: int = 0

    def matches(self, url: str, domain: str, ip: Optional[int]) -> bool:
        if self.kind == RuleKind.WILDCARD:
            return bool(self.regex.match(domain))
        if self.kind == RuleKind.IP_RANGE:
            return ip is not None and self.start <= ip <= self.end
        return bool(self.regex.search(url))


@dataclass(frozen=True)
class CompiledBlocklist:
    """Immutable lookup structure built from a BlocklistConfig."""
    domains: FrozenSet[str] = frozenset()
    rules: Tuple[BlocklistRule, ...] = ()

    def count(self, kind: RuleKind) -> int:
        return sum(1 for rule in self.rules if rule.kind == kind)


def wildcard_to_regex(pattern: str) -> "re.Pattern":
    """Compile '*.example.com' style patterns into an anchored regex."""
    escaped = re.escape(pattern).replace(r'\*', '.*')
    # A leading '*.' also covers the bare domain
    if escaped.startswith(r'.*\.'):
        escaped = r'(?:.*\.)?' + escaped[4:]
    return re.compile(f'^{escaped}$', re.IGNORECASE)


def _wildcard_rule(domain: str) -> BlocklistRule:
    regex = wildcard_to_regex(domain.lower())
    return BlocklistRule(kind=RuleKind.WILDCARD, pattern=domain, regex=regex)


def _cidr_rule(cidr: str) -> Optional[BlocklistRule]:
    bounds = parse_cidr(cidr)
    if bounds is None:
        logger.warning(f"Skipping invalid IP range in blocklist: {cidr!r}")
        return None
    start, end = bounds
    return BlocklistRule(kind=RuleKind.IP_RANGE, pattern=cidr, start=start, end=end)


def _pattern_rule(pattern: PatternInput) -> Optional[BlocklistRule]:
    if isinstance(pattern, str):
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            logger.warning(f"Skipping invalid URL pattern in blocklist: {pattern!r} ({e})")
            return None
        return BlocklistRule(kind=RuleKind.URL_PATTERN, pattern=pattern, regex=regex)
    return BlocklistRule(kind=RuleKind.URL_PATTERN, pattern=pattern.pattern, regex=pattern)


def _split_domains(domains: Iterable[str]) -> Tuple[List[str], List[BlocklistRule]]:
    exact: List[str] = []
    wildcards: List[BlocklistRule] = []
    for domain in domains:
        if not domain:
            continue
        if '*' in domain:
            wildcards.append(_wildcard_rule(domain))
        else:
            exact.append(domain.lower())
    return exact, wildcards


def _ordered(rules: Iterable[BlocklistRule]) -> Tuple[BlocklistRule, ...]:
    return tuple(sorted(rules, key=lambda rule: _RULE_ORDER[rule.kind]))


def compile_blocklist(config: Optional[BlocklistConfig] = None) -> CompiledBlocklist:
    """
    Compile blocklist configuration into a lookup structure.

    Invalid CIDR ranges and regexes are logged and skipped.

    Args:
        config: Domains, IPs/ranges, URL patterns and built-in list flags

    Returns:
        CompiledBlocklist
    """
    config = config or BlocklistConfig()
    domains = set()
    rules: List[BlocklistRule] = []

    for flag, listed in _BUILT_IN_LISTS:
        if getattr(config.built_in, flag):
            domains.update(listed)

    exact, wildcards = _split_domains(config.domains)
    domains.update(exact)
    rules.extend(wildcards)

    for cidr in tuple(config.ips) + tuple(config.ip_ranges):
        rule = _cidr_rule(cidr)
        if rule:
            rules.append(rule)

    for pattern in tuple(config.patterns) + tuple(config.url_patterns):
        rule = _pattern_rule(pattern)
        if rule:
            rules.append(rule)

    return CompiledBlocklist(domains=frozenset(domains), rules=_ordered(rules))


def check_blocklist(url: str, blocklist: CompiledBlocklist) -> BlocklistCheckResult:
    """
    Look a URL up in a compiled blocklist.

    Order: exact domain, registered domain, then wildcard, IP range and URL
    pattern rules. The first match wins.
    """
    domain = extract_domain(url)
    registered = registered_domain(domain)

    if domain and domain in blocklist.domains:
        return BlocklistCheckResult(blocked=True, matched_lists=(DOMAIN_EXACT,), matched_pattern=domain)

    if registered and registered in blocklist.domains:
        return BlocklistCheckResult(
            blocked=True, matched_lists=(DOMAIN_REGISTERED,), matched_pattern=registered
        )

    ip = ipv4_to_int(domain)
    for rule in blocklist.rules:
        if rule.matches(url, domain, ip):
            return BlocklistCheckResult(
                blocked=True, matched_lists=(rule.kind.value,), matched_pattern=rule.pattern
            )

    return BlocklistCheckResult(blocked=False)


def is_suspicious_tld(url: str, additional_tlds: Optional[Iterable[str]] = None) -> bool:
    """Check if a URL's top-level label is a frequently abused TLD."""
    labels = extract_domain(url).rstrip('.').split('.')
    if len(labels) < 2 or not labels[-1]:
        return False

    tld = labels[-1]
    if tld in SUSPICIOUS_TLDS:
        return True
    return any(tld == extra.lower().lstrip('.') for extra in (additional_tlds or ()))


def get_blocklist_threat(result: BlocklistCheckResult, url: str) -> Optional[ThreatInfo]:
    """Translate a blocklist hit into a high-severity threat."""
    if not result.blocked:
        return None

    target = result.matched_pattern or extract_domain(url)
    if result.matched_lists and result.matched_lists[0] == RuleKind.IP_RANGE.value:
        kind, description = ThreatKind.BLOCKED_IP, f"IP address is on blocklist: {target}"
    else:
        kind, description = ThreatKind.BLOCKED_DOMAIN, f"Domain is on blocklist: {target}"

    return ThreatInfo(
        kind=kind,
        severity=Severity.HIGH,
        description=description,
        matched_pattern=result.matched_pattern,
        recommendation="Do not access this URL - it may be malicious",
    )


# =============================================================================
# Manager
# =============================================================================

@dataclass(frozen=True)
class Allowlist:
    """Domains and patterns that override any blocklist hit."""
    domains: FrozenSet[str] = frozenset()
    patterns: Tuple["re.Pattern", ...] = field(default_factory=tuple)

    def matches(self, url: str) -> bool:
        domain = extract_domain(url)
        if domain and domain in self.domains:
            return True

        registered = registered_domain(domain)
        if registered and registered in self.domains:
            return True

        return any(p.search(url) or (domain and p.search(domain)) for p in self.patterns)


class BlocklistManager:
    """
    Compiled blocklist plus allowlist with runtime mutation.

    Both are immutable snapshots. Mutators build a replacement under a lock
    and swap the reference, so concurrent lookups never see a partial update.
    """

    def __init__(
        self,
        config: Optional[BlocklistConfig] = None,
        allowed_domains: Iterable[str] = (),
        allowed_patterns: Iterable[PatternInput] = ()
    ):
        self._lock = threading.Lock()
        self._compiled = compile_blocklist(config)
        self._allowlist = Allowlist()
        if allowed_domains:
            self.add_to_allowlist(allowed_domains)
        if allowed_patterns:
            self.add_patterns_to_allowlist(allowed_patterns)

    @property
    def compiled(self) -> CompiledBlocklist:
        return self._compiled

    def add_to_allowlist(self, domains: Iterable[str]) -> None:
        with self._lock:
            current = self._allowlist
            added = {d.lower() for d in domains if d}
            self._allowlist = replace(current, domains=current.domains | added)

    def add_patterns_to_allowlist(self, patterns: Iterable[PatternInput]) -> None:
        compiled = []
        for pattern in patterns:
            if isinstance(pattern, str):
                try:
                    compiled.append(re.compile(pattern, re.IGNORECASE))
                except re.error as e:
                    logger.warning(f"Skipping invalid allowlist pattern: {pattern!r} ({e})")
            else:
                compiled.append(pattern)

        with self._lock:
            current = self._allowlist
            self._allowlist = replace(current, patterns=current.patterns + tuple(compiled))

    def is_allowed(self, url: str) -> bool:
        return self._allowlist.matches(url)

    def is_blocked(self, url: str) -> BlocklistCheckResult:
        """Check a URL; an allowlist match always wins."""
        if self.is_allowed(url):
            return BlocklistCheckResult(blocked=False)
        return check_blocklist(url, self._compiled)

    def add_to_blocklist(self, domains: Iterable[str]) -> None:
        """Add exact or wildcard domains to the compiled blocklist."""
        exact, wildcards = _split_domains(domains)
        with self._lock:
            current = self._compiled
            self._compiled = CompiledBlocklist(
                domains=current.domains | frozenset(exact),
                rules=_ordered(current.rules + tuple(wildcards)),
            )

    def remove_from_blocklist(self, domains: Iterable[str]) -> None:
        """Remove exact or wildcard domains from the compiled blocklist."""
        removed = {d.lower() for d in domains if d}
        with self._lock:
            current = self._compiled
            self._compiled = CompiledBlocklist(
                domains=current.domains - removed,
                rules=tuple(
                    rule for rule in current.rules
                    if not (rule.kind == RuleKind.WILDCARD and rule.pattern.lower() in removed)
                ),
            )

    def get_stats(self) -> Dict[str, int]:
        compiled = self._compiled
        return {
            "domains": len(compiled.domains),
            "wildcards": compiled.count(RuleKind.WILDCARD),
            "ip_ranges": compiled.count(RuleKind.IP_RANGE),
            "url_patterns": compiled.count(RuleKind.URL_PATTERN),
        }
