"""
Core domain for the group call registry.

This module is framework-agnostic - it doesn't import boto3, httpx,
or FastAPI. Storage and transport concerns live in infrastructure.
"""
