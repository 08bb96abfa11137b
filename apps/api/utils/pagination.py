"""Offset pagination for list endpoints"""
import math
from typing import List, Tuple
from sqlmodel import Session, select, func


def paginate(session: Session, statement, page: int, limit: int) -> Tuple[List, dict]:
    """Run a select with offset/limit and return (items, pagination meta)"""
    total = session.exec(select(func.count()).select_from(statement.order_by(None).subquery())).one()
    items = session.exec(statement.offset((page - 1) * limit).limit(limit)).all()
    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def search_term(search: str) -> str:
    """Lower-cased LIKE pattern for case-insensitive substring search"""
    return f"%{search.strip().lower()}%"
