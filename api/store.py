"""
Missing Products Tracker - Supabase Integration

Record store for the two tracker tables, backed by the supabase-py SDK.

Tables:
- missing_products: open requests
- product_history: received requests with their response time

The SDK client is built lazily from SUPABASE_URL / SUPABASE_ANON_KEY.
PostgREST caps every response at the project's max_rows (1000 by
default), so full-table reads page through with .range().
"""

import os
from typing import Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client


# ============================================================
# CONFIGURATION
# ============================================================

SUPABASE_CONFIG = {
    'url': os.environ.get('SUPABASE_URL', ''),
    'anon_key': os.environ.get('SUPABASE_ANON_KEY', ''),
    'page_size': int(os.environ.get('SUPABASE_PAGE_SIZE', '1000')),
}

MISSING_TABLE = 'missing_products'
HISTORY_TABLE = 'product_history'


class SupabaseError(Exception):
    """Supabase rejected a request"""

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.code = code


class SupabaseStore:
    """
    Thin wrapper over the Supabase client for the tracker's queries.

    Usage:
        store = SupabaseStore()
        rows = store.select_all('missing_products', order='requested_at')

        for row in rows:
            print(f"{row['product_name']} ({row['supplier_name']})")
    """

    def __init__(
        self,
        url: str = None,
        anon_key: str = None,
        client: Client = None,
        page_size: int = None
    ):
        self.url = url or SUPABASE_CONFIG['url']
        self.anon_key = anon_key or SUPABASE_CONFIG['anon_key']
        self.page_size = page_size or SUPABASE_CONFIG['page_size']
        self._client = client

    @property
    def client(self) -> Client:
        """Lazy-load the Supabase client"""
        if self._client is None:
            if not self.url:
                raise SupabaseError("SUPABASE_URL not configured")
            if not self.anon_key:
                raise SupabaseError("SUPABASE_ANON_KEY not configured")
            self._client = create_client(self.url, self.anon_key)
        return self._client

    def _execute(self, query):
        """Run a query builder, surfacing PostgREST errors as SupabaseError"""
        try:
            return query.execute()
        except APIError as e:
            raise SupabaseError(e.message or str(e), e.code) from e

    def select(
        self,
        table: str,
        columns: str = '*',
        eq: dict = None,
        order: str = None,
        ascending: bool = False,
        limit: int = None
    ) -> list[dict]:
        """
        Select one page of rows from a table.

        Args:
            table: Table name
            columns: Column list (e.g. 'id' or 'product_name,priority')
            eq: Equality filters, column -> value
            order: Column to order by
            ascending: Sort direction for `order` (descending by default)
            limit: Max rows to return

        Returns:
            List of row dicts
        """
        query = self.client.table(table).select(columns)
        for column, value in (eq or {}).items():
            query = query.eq(column, value)
        if order:
            query = query.order(order, desc=not ascending)
        if limit is not None:
            query = query.limit(limit)

        return self._execute(query).data or []

    def select_all(
        self,
        table: str,
        columns: str = '*',
        order: str = None,
        ascending: bool = False
    ) -> list[dict]:
        """Select every row of a table, page by page"""
        rows = []
        start = 0

        while True:
            query = self.client.table(table).select(columns)
            if order:
                # id breaks ties so pages don't overlap
                query = query.order(order, desc=not ascending).order('id', desc=not ascending)
            query = query.range(start, start + self.page_size - 1)

            batch = self._execute(query).data or []
            rows.extend(batch)
            if len(batch) < self.page_size:
                return rows
            start += self.page_size

    def select_one(self, table: str, eq: dict, columns: str = '*') -> Optional[dict]:
        """Select a single row by equality filters, or None"""
        rows = self.select(table, columns=columns, eq=eq, limit=1)
        return rows[0] if rows else None

    def count(self, table: str) -> int:
        """Exact row count of a table"""
        query = self.client.table(table).select('id', count='exact').limit(1)
        return self._execute(query).count or 0

    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        """Insert rows and return them as stored (with generated ids)"""
        return self._execute(self.client.table(table).insert(rows)).data or []

    def delete(self, table: str, eq: dict) -> None:
        """Delete rows matching equality filters. Matching nothing is not an error."""
        query = self.client.table(table).delete()
        for column, value in eq.items():
            query = query.eq(column, value)
        self._execute(query)

    def rpc(self, function: str, params: dict = None):
        """Call a Postgres function"""
        return self._execute(self.client.rpc(function, params or {})).data

    def test_connection(self) -> dict:
        """
        Test the connection by counting missing products.

        Returns:
            Dict with 'success', 'message', and optionally 'count'
        """
        try:
            count = self.count(MISSING_TABLE)
            return {
                'success': True,
                'message': f'Connected! Found {count} missing products',
                'count': count
            }
        except Exception as e:
            return {'success': False, 'message': str(e)}


# ============================================================
# CLI TESTING
# ============================================================

if __name__ == "__main__":
    print("=" * 60)
    print("SUPABASE STORE TEST")
    print("=" * 60)

    store = SupabaseStore()

    print("\nConfiguration:")
    print(f"  URL: {store.url or '(not set)'}")
    if store.anon_key:
        print(f"  Anon key: {store.anon_key[:8]}...{store.anon_key[-4:]}")
    else:
        print("  Anon key: (not set)")

    print("\nTesting connection...")
    result = store.test_connection()

    if result['success']:
        print(f"  ✅ {result['message']}")

        history = store.select(HISTORY_TABLE, order='received_at', limit=5)
        print("\n  Latest received:")
        for row in history:
            print(f"    - {row['product_name']} ({row['supplier_name']}): "
                  f"{row['response_time_days']} days")
    else:
        print(f"  ❌ {result['message']}")
