"""Core domain logic: delay policies, filters, subscriptions and security."""
