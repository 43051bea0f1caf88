"""
Test package for the Electriborne portal.

This package contains test suites for:
- Authentication, sessions and role guards
- Backend client envelopes and error mapping
- Admin, technician and client pages
- Public site, quote requests and the charging estimator
- Payments and notifications
"""
