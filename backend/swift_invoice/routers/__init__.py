"""API routers package.

  - auth: registration, login, profile and caller-identity dependencies
  - invoices: invoice CRUD, status changes and PDF download
  - system: liveness / readiness
  - metrics: Prometheus exposition
"""
