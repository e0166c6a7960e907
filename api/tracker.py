"""
Missing Products Tracker - Actions

Business logic behind each router action. Every action receives its
store (and, for chat, completion) client explicitly so the HTTP layer
decides which clients to build.
"""

import json
import logging
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .store import MISSING_TABLE, HISTORY_TABLE, SupabaseError


logger = logging.getLogger(__name__)


PRIORITIES = ('low', 'medium', 'high')
DEFAULT_PRIORITY = 'medium'

CHAT_HISTORY_LIMIT = 15
CHAT_ROLES = ('user', 'assistant')
CHAT_FALLBACK_REPLY = 'could not process request'

# Raised by mark_product_received when the row is already gone
NO_DATA_FOUND = 'P0002'


# ============================================================
# ERRORS
# ============================================================

class ActionError(Exception):
    """A request the tracker refuses, with the HTTP status to report"""
    status = 400


class ValidationError(ActionError):
    status = 400


class NotFoundError(ActionError):
    status = 404


# ============================================================
# DATA CLASSES
# ============================================================

@dataclass
class MissingProduct:
    """An open request for a product awaiting delivery"""
    product_name: str
    supplier_name: str
    requested_at: str
    priority: str = DEFAULT_PRIORITY


@dataclass
class HistoryEntry:
    """A received request with its response latency"""
    product_name: str
    supplier_name: str
    requested_at: str
    received_at: str
    response_time_days: int

    @classmethod
    def from_product(cls, product: dict, received_at: datetime) -> 'HistoryEntry':
        requested = parse_timestamp(product['requested_at'])
        return cls(
            product_name=product['product_name'],
            supplier_name=product['supplier_name'],
            requested_at=product['requested_at'],
            received_at=received_at.isoformat(),
            response_time_days=response_time_days(requested, received_at)
        )


# ============================================================
# HELPERS
# ============================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse a Postgres/ISO timestamp. Naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def response_time_days(requested_at: datetime, received_at: datetime) -> int:
    """
    Whole calendar days between request and receipt, rounded up.

    One hour counts as 1 day; exactly 48 hours is 2 days.
    """
    elapsed = received_at - requested_at
    return math.ceil(elapsed / timedelta(days=1))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (2.5 -> 3)"""
    return math.floor(value + 0.5)


def _require_text(body: dict, field: str) -> str:
    value = body.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def _require_id(body: dict):
    product_id = body.get('id')
    if product_id is None or product_id == '':
        raise ValidationError("id is required")
    return product_id


# ============================================================
# ACTIONS
# ============================================================

def add_product(store, body: dict, now: Callable[[], datetime] = utc_now) -> list[dict]:
    """Record a new missing product and return the inserted row(s)"""
    product_name = _require_text(body, 'productName')
    supplier_name = _require_text(body, 'supplierName')

    priority = body.get('priority') or DEFAULT_PRIORITY
    if priority not in PRIORITIES:
        raise ValidationError(f"priority must be one of: {', '.join(PRIORITIES)}")

    product = MissingProduct(
        product_name=product_name,
        supplier_name=supplier_name,
        priority=priority,
        requested_at=now().isoformat()
    )
    inserted = store.insert(MISSING_TABLE, [asdict(product)])
    logger.info("Added missing product %s from %s", product_name, supplier_name)
    return inserted


def get_missing(store, body: dict = None) -> list[dict]:
    return store.select_all(MISSING_TABLE, order='requested_at')


def mark_received(store, body: dict, now: Callable[[], datetime] = utc_now) -> dict:
    """
    Move a missing product into the history table.

    The history insert and the delete happen in a single database
    transaction (the mark_product_received function), so a product is
    never left in both tables. A concurrent call that loses the race
    finds the row gone and gets a NotFoundError.
    """
    product_id = _require_id(body)

    product = store.select_one(MISSING_TABLE, eq={'id': product_id})
    if not product:
        raise NotFoundError("product not found")

    entry = HistoryEntry.from_product(product, now())

    try:
        store.rpc('mark_product_received', {
            'p_id': product_id,
            'p_received_at': entry.received_at,
            'p_response_time_days': entry.response_time_days,
        })
    except SupabaseError as e:
        if e.code == NO_DATA_FOUND:
            raise NotFoundError("product not found") from e
        raise

    logger.info(
        "Received %s after %d day(s)", entry.product_name, entry.response_time_days
    )
    return {'success': True}


def delete_product(store, body: dict) -> dict:
    """Delete a missing product. Unknown ids are not an error."""
    product_id = _require_id(body)
    store.delete(MISSING_TABLE, eq={'id': product_id})
    return {'success': True}


def get_history(store, body: dict = None) -> list[dict]:
    return store.select_all(HISTORY_TABLE, order='received_at')


def compute_metrics(missing_count: int, history: list[dict]) -> dict:
    """
    Aggregate tracker metrics.

    Args:
        missing_count: Number of open missing products
        history: Every history row (supplier_name, response_time_days)

    Returns:
        Dict with missingCount, receivedCount, avgDays, supplierCounts
    """
    received_count = len(history)

    avg_days = 0
    if received_count > 0:
        total_days = sum(h.get('response_time_days') or 0 for h in history)
        avg_days = round_half_up(total_days / received_count)

    supplier_counts = {}
    for h in history:
        supplier = h.get('supplier_name')
        supplier_counts[supplier] = supplier_counts.get(supplier, 0) + 1

    return {
        'missingCount': missing_count,
        'receivedCount': received_count,
        'avgDays': avg_days,
        'supplierCounts': supplier_counts,
    }


def get_metrics(store, body: dict = None) -> dict:
    missing_count = store.count(MISSING_TABLE)
    history = store.select_all(HISTORY_TABLE, columns='supplier_name,response_time_days')
    return compute_metrics(missing_count, history)


# ============================================================
# CHAT ASSISTANT
# ============================================================

def _validate_chat_history(history) -> list[dict]:
    if history is None:
        return []
    if not isinstance(history, list):
        raise ValidationError("history must be a list")

    turns = []
    for turn in history:
        if (
            not isinstance(turn, dict)
            or turn.get('role') not in CHAT_ROLES
            or not isinstance(turn.get('content'), str)
        ):
            raise ValidationError("history turns need a role (user/assistant) and content")
        turns.append({'role': turn['role'], 'content': turn['content']})
    return turns


def build_system_prompt(missing: list[dict], history: list[dict]) -> str:
    """Instruction for the model with the current inventory data inlined"""
    return (
        "You are the assistant of a store's missing-products tracker. "
        "Answer ONLY from the data below. If the answer is not in the data, "
        "say you don't have that information. Keep answers short.\n\n"
        f"Products currently missing (product_name, supplier_name, priority):\n"
        f"{json.dumps(missing, ensure_ascii=False)}\n\n"
        f"Last {CHAT_HISTORY_LIMIT} received products "
        f"(product_name, supplier_name, response_time_days):\n"
        f"{json.dumps(history, ensure_ascii=False)}"
    )


def chat_with_groq(store, chat_client, body: dict) -> dict:
    """Answer a question about the inventory using the completion service"""
    message = body.get('message')
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("message is required")
    prior_turns = _validate_chat_history(body.get('history'))

    missing = store.select_all(
        MISSING_TABLE,
        columns='product_name,supplier_name,priority'
    )
    history = store.select(
        HISTORY_TABLE,
        columns='product_name,supplier_name,response_time_days',
        order='received_at',
        limit=CHAT_HISTORY_LIMIT
    )

    messages = [{'role': 'system', 'content': build_system_prompt(missing, history)}]
    messages.extend(prior_turns)
    messages.append({'role': 'user', 'content': message})

    reply: Optional[str] = chat_client.chat(messages)
    return {'reply': reply or CHAT_FALLBACK_REPLY}
