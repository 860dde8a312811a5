"""
Route Protection Policies

Closed table of routes that require step-up verification before access.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from app.models.enums import RouteKey, StepUpMethod


@dataclass(frozen=True)
class RouteProtectionPolicy:
    """Step-up requirements for one route."""
    enabled: bool
    method: StepUpMethod
    ttl_hours: int
    max_sends_per_24_hours: int
    resend_cooldown_seconds: int
    max_attempts: int
    grant_ttl_hours: Optional[int] = None

    @property
    def challenge_ttl(self) -> timedelta:
        return timedelta(hours=self.ttl_hours)

    @property
    def grant_ttl(self) -> timedelta:
        hours = self.grant_ttl_hours if self.grant_ttl_hours is not None else self.ttl_hours
        return timedelta(hours=hours)

    @property
    def resend_cooldown(self) -> timedelta:
        return timedelta(seconds=self.resend_cooldown_seconds)


ROUTE_PROTECTION_POLICIES: dict[RouteKey, RouteProtectionPolicy] = {
    RouteKey.COMPARISON: RouteProtectionPolicy(
        enabled=True,
        method=StepUpMethod.EMAIL_OTP,
        ttl_hours=5,
        max_sends_per_24_hours=3,
        resend_cooldown_seconds=60,
        max_attempts=5,
    ),
}


def get_route_protection_policy(
    route_key: RouteKey,
    policies: Optional[dict[RouteKey, RouteProtectionPolicy]] = None,
) -> Optional[RouteProtectionPolicy]:
    """
    Look up the enabled policy for a route.

    Returns:
        The policy, or None when the route is not step-up protected.
    """
    table = ROUTE_PROTECTION_POLICIES if policies is None else policies
    policy = table.get(route_key)
    if policy is None or not policy.enabled:
        return None
    return policy
