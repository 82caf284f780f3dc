"""
Accounts - Database Operations

Ownership lookups used by the ingestion pipeline. Account CRUD belongs to the
API layer; only creation and reads live here.
"""

from .base import get_session
from .models.account import Account


def _account_to_dict(account: Account) -> dict:
    return {
        "id": account.id,
        "user_id": account.user_id,
        "name": account.name,
        "bank": account.bank,
        "type": account.type,
        "mask": account.mask,
        "iso_currency_code": account.iso_currency_code,
        "is_active": account.is_active,
        "created_at": account.created_at,
        "updated_at": account.updated_at,
    }


def create_account(
    user_id: str,
    name: str,
    bank: str = None,
    account_type: str = None,
    mask: str = None,
    iso_currency_code: str = "CAD",
) -> int:
    """
    Create a ledger account.

    Args:
        user_id: Owning user ID
        name: Display name
        bank: Bank code (e.g. 'bmo', 'rbc')
        account_type: Account type (e.g. 'creditcard', 'chequing')
        mask: Last four digits of the account/card number
        iso_currency_code: Account currency

    Returns:
        Account ID
    """
    with get_session() as session:
        account = Account(
            user_id=user_id,
            name=name,
            bank=bank.lower() if bank else None,
            type=account_type.lower() if account_type else None,
            mask=mask,
            iso_currency_code=iso_currency_code,
            is_active=True,
        )
        session.add(account)
        session.commit()
        return account.id


def get_account(account_id: int, user_id: str = None) -> dict:
    """Get an account by ID, optionally scoped to its owner."""
    with get_session() as session:
        account = session.get(Account, account_id)

        if not account or (user_id is not None and account.user_id != user_id):
            return None

        return _account_to_dict(account)


def set_account_active(account_id: int, is_active: bool) -> bool:
    """Activate or deactivate an account."""
    with get_session() as session:
        account = session.get(Account, account_id)

        if not account:
            return False

        account.is_active = is_active
        session.commit()
        return True


def resolve_owning_account_id(
    session, sync_source, bank: str, account_type: str
) -> int:
    """
    Resolve the account that owns records parsed from a sync source.

    The sync source's linked account must exist, be active, and when it
    declares a bank/type they must match the parser that claimed the email.

    Args:
        session: Active SQLAlchemy session
        sync_source: SyncSource row
        bank: Bank code of the claiming parser
        account_type: Account type of the claiming parser

    Returns:
        Account ID, or None when no owning account resolves
    """
    account = session.get(Account, sync_source.account_id)
    if account is None or not account.is_active:
        return None

    if account.bank and account.bank.lower() != bank.lower():
        return None
    if account.type and account.type.lower() != account_type.lower():
        return None

    return account.id
