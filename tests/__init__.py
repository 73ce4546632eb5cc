"""
Test suite for snaptag.

This module contains all test cases for the application:
- Unit tests for services, models and utilities
- API tests against the FastAPI application
- Integration tests for complete upload and search workflows
"""
