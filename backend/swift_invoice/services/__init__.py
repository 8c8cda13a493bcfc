"""Service layer package.

  - totals: pure invoice arithmetic shared by the API and the client draft
  - invoice_service: persistence and business rules for invoices
  - pdf_service: HTML layout and WeasyPrint rendering
"""

__all__ = [
    "invoice_service",
    "pdf_service",
    "totals",
]
