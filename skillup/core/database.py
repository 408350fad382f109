from supabase import create_client, Client
from skillup.core.config import settings

_supabase_client: Client | None = None


def get_supabase() -> Client:
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY,
        )
    return _supabase_client


def single_row(result) -> dict | None:
    """Row from a `.maybe_single().execute()` call, or None.

    Depending on the client version a missing row comes back either as a
    response with `data=None` or as no response at all.
    """
    if result is None or not result.data:
        return None
    return result.data


PAGE_SIZE = 1000


def fetch_all(build, order_by: str = "id", page_size: int | None = None) -> list[dict]:
    """Every row of a select, fetched one `.range()` window at a time.

    PostgREST caps a single response at its max-rows setting (1000 on
    Supabase). `build` returns a fresh filtered query for each page.
    """
    page_size = page_size or PAGE_SIZE
    rows: list[dict] = []
    start = 0
    while True:
        page = build().order(order_by).range(start, start + page_size - 1).execute().data or []
        rows.extend(page)
        if len(page) < page_size:
            return rows
        start += page_size
