"""
RBAC (Role-Based Access Control) application.

Provides school-platform access control with:
- Single-role users (one role slug per user)
- Global system roles cloned into every tenant
- Per-tenant, per-role additive permission overrides
- A permission resolver and request-scoped authorization gate
- Audit logging of every role and override mutation
"""
