from typing import Optional

import pytest
from pydantic import BaseModel

from daycare.core.exceptions import ValidationError
from daycare.models import Child
from daycare.utils.updates import update_fields


class ChildPatch(BaseModel):
    first_name: Optional[str] = None
    waitlist_priority: Optional[int] = None
    notes: Optional[str] = None


def test_only_sent_fields_are_returned():
    assert update_fields(ChildPatch(notes="Picked up early"), Child) == {"notes": "Picked up early"}


def test_nullable_columns_can_be_cleared():
    payload = ChildPatch(waitlist_priority=None, notes=None)

    assert update_fields(payload, Child) == {"waitlist_priority": None, "notes": None}


@pytest.mark.parametrize(
    "payload, required",
    [
        (ChildPatch(first_name=None), ()),
        (ChildPatch(notes=None), ("notes",)),
    ],
)
def test_null_on_required_field_is_rejected(payload, required):
    with pytest.raises(ValidationError):
        update_fields(payload, Child, required=required)
