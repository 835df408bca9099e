"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: Default admin creation and sample template seeding
- db: Database configuration and connection management
- errors: Shared exception types and JSON error handlers
- security: Authentication tokens and password hashing
"""
