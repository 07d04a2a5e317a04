# marketplace/query/operators.py

# Sigil the collection store uses to mark comparison operators in criteria
# documents, e.g. {"price": {"$gte": 100}}.
OPERATOR_SIGIL = "$"

# Operators a client may use in bracket form: ``?price[gte]=100``.
# Each one is rewritten to its sigil form before reaching the store.
REQUEST_OPERATORS = ("gte", "gt", "lte", "lt")

# Maps criteria operators to SQLAlchemy column methods.
# For example, {"price": {"$gte": 18}} calls ``NFT.price.__ge__(18)``.
OPERATOR_MAP = {
    "$eq": "__eq__",    # Equal
    "$ne": "__ne__",    # Not Equal
    "$gt": "__gt__",    # Greater Than
    "$gte": "__ge__",   # Greater Than or Equal
    "$lt": "__lt__",    # Less Than
    "$lte": "__le__",   # Less Than or Equal
    "$in": "in_",       # In a list of values
    "$nin": "not_in",   # Not in a list of values
}

# Operators that expect a list of values.
LIST_OPERATORS = {"$in", "$nin"}


def to_store_operator(name: str) -> str | None:
    """Return the sigil form of a request operator, or None if it is not allowed."""
    if name in REQUEST_OPERATORS:
        return f"{OPERATOR_SIGIL}{name}"
    return None


def is_operator_document(value) -> bool:
    return isinstance(value, dict) and bool(value) and all(
        isinstance(key, str) and key.startswith(OPERATOR_SIGIL) for key in value
    )
