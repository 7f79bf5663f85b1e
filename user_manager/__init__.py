"""User Manager: user accounts, role-based access and an audit trail behind a REST API."""

__version__ = "1.0.0"
