"""Integration adapters for external systems (Google Sheets, closing bot).

Keep these modules small and testable:
- No FastAPI request/response objects
- No business rules beyond header/column resolution
- Pure IO + parsing helpers
"""
