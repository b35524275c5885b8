"""Partial update helpers for PATCH/PUT request bodies."""

from typing import Iterable

from pydantic import BaseModel
from sqlalchemy import inspect

from daycare.core.exceptions import ValidationError


def update_fields(payload: BaseModel, model, required: Iterable[str] = ()) -> dict:
    """
    Fields the client actually sent.

    An explicit null is only accepted for columns that may be cleared; nulls on
    NOT NULL columns (and on any name in ``required``) are rejected.
    """
    changes = payload.model_dump(exclude_unset=True)
    columns = inspect(model).columns
    must_have = set(required)
    for key, value in changes.items():
        if value is not None:
            continue
        if key in must_have or (key in columns and not columns[key].nullable):
            raise ValidationError(f"{key} cannot be null")
    return changes
