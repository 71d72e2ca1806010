# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides the row-level helpers every service builds on:
# - Fetching a single row owned by a user
# - Inserting rows and returning the stored representation
# - Updating / deleting rows scoped by owner
# - Reading a user's third-party integration record
#
# All queries run with the service_role key, so ownership is enforced here
# by filtering on user_id rather than by Row Level Security.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   job = SupabaseClient.fetch_owned_row("publishing_queue_logs", job_id, user_id)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings

# Set up logging for this module
logger = logging.getLogger(__name__)


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Carries a machine-readable code plus a suggestion describing how
    to fix the problem, not just what failed.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        # Fetch a content item, only if it belongs to the caller
        item = SupabaseClient.fetch_owned_row("content_editor", item_id, user.id)
        if item is None:
            raise ResourceNotFoundError("Content", item_id)
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        This is appropriate for server-side operations.

        Returns:
            Client: Supabase client instance

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def _normalize_uuid(cls, uuid_value: str | UUID) -> str:
        """Convert UUID to string for queries."""
        return str(uuid_value) if isinstance(uuid_value, UUID) else uuid_value

    # -------------------------------------------------------------------------
    # Owned Row Operations
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_owned_row(
        cls,
        table: str,
        row_id: str | UUID,
        user_id: str | UUID,
        columns: str = "*",
    ) -> dict[str, Any] | None:
        """
        Fetch one row by id, only if it belongs to the user.

        A row owned by someone else is indistinguishable from a missing
        row, so callers can report both as "not found".

        Args:
            table: Table name
            row_id: Row UUID
            user_id: Owner UUID
            columns: PostgREST select list (default: all columns)

        Returns:
            Row dict, or None if not found

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        row_id_str = cls._normalize_uuid(row_id)

        try:
            response = (
                client.table(table)
                .select(columns)
                .eq("id", row_id_str)
                .eq("user_id", cls._normalize_uuid(user_id))
                .limit(1)
                .execute()
            )
            rows = response.data or []
            return rows[0] if rows else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch {table} row: {e}",
                code="FETCH_ROW_FAILED",
                suggestion=f"Check that the {table} table is accessible",
                details={"table": table, "id": row_id_str}
            )

    @classmethod
    def insert_row(cls, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a row and return the stored representation.

        Args:
            table: Table name
            data: Column values

        Returns:
            Inserted row dict with generated id and timestamps

        Raises:
            SupabaseClientError: If insert fails or returns nothing
        """
        client = cls.get_client()

        try:
            response = client.table(table).insert(data).execute()

            if response.data:
                return response.data[0]
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA",
                details={"table": table}
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert into {table}: {e}",
                code="INSERT_FAILED",
                details={"table": table}
            )

    @classmethod
    def update_owned_row(
        cls,
        table: str,
        row_id: str | UUID,
        user_id: str | UUID,
        data: dict[str, Any],
    ) -> dict[str, Any] | None:
        """
        Update a row owned by the user.

        Returns:
            Updated row dict, or None if no row matched

        Raises:
            SupabaseClientError: If update fails
        """
        client = cls.get_client()
        row_id_str = cls._normalize_uuid(row_id)

        try:
            response = (
                client.table(table)
                .update(data)
                .eq("id", row_id_str)
                .eq("user_id", cls._normalize_uuid(user_id))
                .execute()
            )
            rows = response.data or []
            return rows[0] if rows else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update {table} row: {e}",
                code="UPDATE_FAILED",
                details={"table": table, "id": row_id_str}
            )

    @classmethod
    def delete_owned_row(
        cls,
        table: str,
        row_id: str | UUID,
        user_id: str | UUID,
    ) -> bool:
        """
        Delete a row owned by the user.

        Returns:
            True if a row was deleted

        Raises:
            SupabaseClientError: If delete fails
        """
        client = cls.get_client()
        row_id_str = cls._normalize_uuid(row_id)

        try:
            response = (
                client.table(table)
                .delete()
                .eq("id", row_id_str)
                .eq("user_id", cls._normalize_uuid(user_id))
                .execute()
            )
            return bool(response.data)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete {table} row: {e}",
                code="DELETE_FAILED",
                details={"table": table, "id": row_id_str}
            )

    # -------------------------------------------------------------------------
    # Integrations
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_integration(
        cls,
        table: str,
        user_id: str | UUID,
        provider: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Fetch the user's stored OAuth integration.

        Args:
            table: "google_integrations" or "instagram_integrations"
            user_id: Owner UUID
            provider: Optional provider column filter (Google rows carry one)

        Returns:
            Integration row, or None if the user hasn't connected

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        try:
            query = (
                client.table(table)
                .select("*")
                .eq("user_id", cls._normalize_uuid(user_id))
            )
            if provider:
                query = query.eq("provider", provider)

            response = query.limit(1).execute()
            rows = response.data or []
            return rows[0] if rows else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch integration: {e}",
                code="FETCH_INTEGRATION_FAILED",
                details={"table": table}
            )
