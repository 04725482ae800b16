"""Custom exception types for domain and API layers."""


class AppError(Exception):
    """Base app exception."""


class ConfigurationError(AppError):
    """Required runtime configuration is missing or invalid."""


class RelationLoadError(AppError):
    """A subscription's plan or merchant could not be loaded."""

    def __init__(self, subscription_id, relation: str, detail: str | None = None):
        self.subscription_id = subscription_id
        self.relation = relation
        message = f"Failed to load {relation} for subscription {subscription_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SubscriptionNotFoundError(AppError):
    """No active subscription exists for the requested merchant."""
