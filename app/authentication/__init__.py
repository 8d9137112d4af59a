"""
Authentication application.

Provides the email-based User model that owns shops and infrastructure
providers. Login and session mechanics are handled by Django and DRF.

Usage:
    from authentication.models import User
"""
