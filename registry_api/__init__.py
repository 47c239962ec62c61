"""
HTTP API Package for the Business Name Availability System

FastAPI application, request/response schemas and middleware.
"""
