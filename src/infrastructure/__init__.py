"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- dynamodb: Call record persistence
- identity: Web identity token refresh for AWS credentials

These wrappers translate between external formats and our domain models.
"""
