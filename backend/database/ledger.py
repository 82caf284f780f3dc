"""
Ledger - Transaction and Balance Update Operations

Writes run inside the pipeline's session so they commit atomically with the
idempotency ledger row. Balance reads always order by
(update_date desc, id desc) so ties on update_date resolve deterministically.
"""

from sqlalchemy import select

from .base import get_session
from .models.ledger import BALANCE_TYPES, BalanceUpdate, Transaction


def _transaction_to_dict(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "user_id": txn.user_id,
        "account_id": txn.account_id,
        "sync_source_id": txn.sync_source_id,
        "processed_email_id": txn.processed_email_id,
        "amount": txn.amount,
        "iso_currency_code": txn.iso_currency_code,
        "transaction_date": txn.transaction_date,
        "name": txn.name,
        "merchant_name": txn.merchant_name,
        "card_last4": txn.card_last4,
        "pending": txn.pending,
        "created_at": txn.created_at,
    }


def _balance_update_to_dict(update: BalanceUpdate) -> dict:
    return {
        "id": update.id,
        "user_id": update.user_id,
        "account_id": update.account_id,
        "sync_source_id": update.sync_source_id,
        "processed_email_id": update.processed_email_id,
        "balance_type": update.balance_type,
        "new_balance": update.new_balance,
        "update_source": update.update_source,
        "source_detail": update.source_detail,
        "update_date": update.update_date,
        "created_at": update.created_at,
    }


def _check_balance_type(balance_type: str):
    if balance_type not in BALANCE_TYPES:
        raise ValueError(f"Invalid balance type: {balance_type}")


def create_transaction(
    session,
    user_id: str,
    account_id: int,
    amount,
    transaction_date,
    name: str,
    sync_source_id: int = None,
    processed_email_id: int = None,
    merchant_name: str = None,
    card_last4: str = None,
    pending: bool = False,
    iso_currency_code: str = "CAD",
) -> int:
    """
    Insert a transaction inside the caller's transaction.

    Returns:
        Transaction ID
    """
    txn = Transaction(
        user_id=user_id,
        account_id=account_id,
        sync_source_id=sync_source_id,
        processed_email_id=processed_email_id,
        amount=amount,
        iso_currency_code=iso_currency_code,
        transaction_date=transaction_date,
        name=name,
        merchant_name=merchant_name,
        card_last4=card_last4,
        pending=pending,
    )
    session.add(txn)
    session.flush()
    return txn.id


def create_balance_update(
    session,
    user_id: str,
    account_id: int,
    balance_type: str,
    new_balance,
    update_date,
    sync_source_id: int = None,
    processed_email_id: int = None,
    update_source: str = "email",
    source_detail: str = None,
) -> int:
    """
    Insert a balance update inside the caller's transaction.

    Returns:
        Balance update ID
    """
    _check_balance_type(balance_type)

    update = BalanceUpdate(
        user_id=user_id,
        account_id=account_id,
        sync_source_id=sync_source_id,
        processed_email_id=processed_email_id,
        balance_type=balance_type,
        new_balance=new_balance,
        update_source=update_source,
        source_detail=source_detail,
        update_date=update_date,
    )
    session.add(update)
    session.flush()
    return update.id


def get_transactions_by_account(
    account_id: int, user_id: str, limit: int = 50, offset: int = 0
) -> list:
    """Get an account's transactions, most recent first."""
    with get_session() as session:
        rows = session.execute(
            select(Transaction)
            .where(Transaction.account_id == account_id, Transaction.user_id == user_id)
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
        return [_transaction_to_dict(txn) for txn in rows]


def get_balance_updates_by_account(
    account_id: int, user_id: str, limit: int = 50, offset: int = 0
) -> list:
    """Get an account's balance history, most recent first."""
    with get_session() as session:
        rows = session.execute(
            select(BalanceUpdate)
            .where(
                BalanceUpdate.account_id == account_id,
                BalanceUpdate.user_id == user_id,
            )
            .order_by(BalanceUpdate.update_date.desc(), BalanceUpdate.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
        return [_balance_update_to_dict(update) for update in rows]


def get_latest_balance(
    account_id: int, user_id: str, balance_type: str = "available_balance"
) -> dict:
    """
    Get the most recent balance update of a type for an account.

    Args:
        account_id: Account ID
        user_id: Owning user ID
        balance_type: 'available_balance' or 'current_balance'

    Returns:
        Balance update dict, or None if the account has no updates of that type
    """
    _check_balance_type(balance_type)

    with get_session() as session:
        update = session.execute(
            select(BalanceUpdate)
            .where(
                BalanceUpdate.account_id == account_id,
                BalanceUpdate.user_id == user_id,
                BalanceUpdate.balance_type == balance_type,
            )
            .order_by(BalanceUpdate.update_date.desc(), BalanceUpdate.id.desc())
            .limit(1)
        ).scalar_one_or_none()

        return _balance_update_to_dict(update) if update else None


def get_current_balance(
    account_id: int, user_id: str, balance_type: str = "available_balance"
):
    """Get the current balance value (Decimal) or None if never reported."""
    latest = get_latest_balance(account_id, user_id, balance_type)
    return latest["new_balance"] if latest else None
