"""
Admission rules for the load balancer listener that sits behind CloudFront.

The listener rejects every request with a fixed response unless one of its
rules matches. In this deployment there is a single rule: the custom header
written by the distribution must carry the shared secret. The same rule
objects are used to synthesize the listener rules and to evaluate requests
in tests.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .logger import get_logger
from .secret import OriginSecret

logger = get_logger("docker-codebuild.admission")

MIN_PRIORITY = 1
MAX_PRIORITY = 50000


@dataclass(frozen=True)
class RoutingRule:
    header_name: str
    expected_value: str
    priority: int
    forward_target: str

    def __post_init__(self) -> None:
        if not MIN_PRIORITY <= self.priority <= MAX_PRIORITY:
            raise ValueError(
                f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}"
            )
        if not self.header_name:
            raise ValueError("header_name must not be empty")

    def matches(self, headers: Mapping[str, str]) -> bool:
        """
        Compare the way an ALB http-header condition does: both the name and
        the value are case-insensitive. Secret values are alphanumeric, so
        their 62-character alphabet effectively shrinks to 36.
        """
        wanted = self.header_name.lower()
        expected = self.expected_value.lower()
        for name, value in headers.items():
            if name.lower() == wanted and value.lower() == expected:
                return True
        return False


@dataclass(frozen=True)
class FixedResponse:
    status_code: int = 403


@dataclass(frozen=True)
class Admission:
    forwarded: bool
    target: Optional[str] = None
    status_code: Optional[int] = None
    rule: Optional[RoutingRule] = None


@dataclass
class ListenerRules:
    default_action: FixedResponse = field(default_factory=FixedResponse)
    _rules: List[RoutingRule] = field(default_factory=list)

    @property
    def rules(self) -> List[RoutingRule]:
        return sorted(self._rules, key=lambda rule: rule.priority)

    def add_rule(self, rule: RoutingRule) -> None:
        if any(existing.priority == rule.priority for existing in self._rules):
            raise ValueError(f"priority {rule.priority} is already in use")
        self._rules.append(rule)

    def evaluate(self, headers: Mapping[str, str]) -> Admission:
        """Route one request: first matching rule by ascending priority, else the default."""
        for rule in self.rules:
            if rule.matches(headers):
                return Admission(forwarded=True, target=rule.forward_target, rule=rule)

        logger.debug("no listener rule matched, returning %d", self.default_action.status_code)
        return Admission(forwarded=False, status_code=self.default_action.status_code)


def origin_rules(secret: OriginSecret, target: str, priority: int = 1) -> ListenerRules:
    """The listener of this deployment: forward on the secret header, reject the rest."""
    listener = ListenerRules(default_action=FixedResponse(403))
    listener.add_rule(
        RoutingRule(
            header_name=secret.header_name,
            expected_value=secret.value,
            priority=priority,
            forward_target=target,
        )
    )
    return listener


def edge_headers(secret: OriginSecret) -> Dict[str, str]:
    """Headers the distribution adds to every request it forwards to the origin."""
    return {secret.header_name: secret.value}
