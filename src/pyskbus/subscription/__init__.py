"""Subscription layer.

Matches subscribe commands against the keyed telemetry streams, applies each
row's delivery policy and replays cached values to new subscribers.
"""

from pyskbus.subscription.manager import ActiveSubscription, SubscriptionManager, SubscriptionState

__all__ = ["ActiveSubscription", "SubscriptionManager", "SubscriptionState"]
