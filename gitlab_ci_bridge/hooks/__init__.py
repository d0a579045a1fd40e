"""Webhook reconciliation."""

from gitlab_ci_bridge.hooks.reconciler import WebhookReconciler

__all__ = ["WebhookReconciler"]
