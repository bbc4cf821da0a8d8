"""Unit tests for bookrecon web route modules.

Testing pattern:
    - Use FastAPI's TestClient against the real app
    - Replace the database dependency with a mock session
    - Patch catalog service/repository calls per test
"""
