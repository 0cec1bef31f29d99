"""
Single-statement upserts (INSERT ... ON CONFLICT DO UPDATE).
Works on PostgreSQL (production) and SQLite (local/tests).
"""
from sqlalchemy.dialects import postgresql, sqlite

from models import db

_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def insert_for_dialect(model):
    dialect = db.session.get_bind().dialect.name
    try:
        return _INSERTS[dialect](model)
    except KeyError:
        raise RuntimeError(f"Upsert not supported on database dialect {dialect!r}")


def upsert(model, values, index_elements, set_):
    """
    Insert `values`, or apply `set_` to the row conflicting on `index_elements`.
    `set_` may reference the stored row via model columns and the proposed row
    via the returned statement's `excluded` (pass a callable to use it).
    Returns the CursorResult; the caller commits.
    """
    stmt = insert_for_dialect(model).values(**values)
    if callable(set_):
        set_ = set_(stmt.excluded)
    stmt = stmt.on_conflict_do_update(index_elements=index_elements, set_=set_)
    return db.session.execute(stmt)
