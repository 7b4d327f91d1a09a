from __future__ import annotations


class CyberRiskError(Exception):
    """Base exception with user-friendly message."""

    exit_code = 1
    status = 500


class ConfigError(CyberRiskError):
    exit_code = 2


class ValidationError(CyberRiskError):
    exit_code = 4
    status = 400


class NotFoundError(CyberRiskError):
    exit_code = 4
    status = 404


class ComputationError(CyberRiskError):
    exit_code = 5
    status = 500


class ApiError(CyberRiskError):
    exit_code = 3
    status = 502


class AuthenticationError(ApiError):
    status = 401
