"""
pytest suite for the storefront payment service.

Test categories:
- Unit tests: status mapping, signatures, settings
- Service tests: reconciler against in-memory collaborators
- Database tests: guarded updates on in-memory and file-backed SQLite
- API tests: full FastAPI app through httpx.ASGITransport
"""
