"""Subscription plans; gates real-money trading."""

from subscription.service import Plan, Status, Subscription, SubscriptionService

__all__ = ["Plan", "Status", "Subscription", "SubscriptionService"]
