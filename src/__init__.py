"""
Group Call Registry - tracks which call instance is live for each group.

This package contains the complete application:
- core: Framework-agnostic domain models
- infrastructure: DynamoDB storage and identity token refresh
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
