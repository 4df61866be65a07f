"""TopShelf - Services Package

This package contains service modules for outbound integrations:
- Pooled async HTTP client
- Catalog lookup client used to enrich loans
"""
