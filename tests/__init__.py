# =============================================================================
# tests/ - Test Suite
# =============================================================================
# Tests for the Creator Ops Hub API. Services run against the in-memory
# Supabase fake in fakes.py; routers are exercised through TestClient.
#
# Run tests with: pytest
# =============================================================================
