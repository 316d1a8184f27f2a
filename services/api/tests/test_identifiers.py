import uuid
from types import SimpleNamespace

import pytest

from mediahub.errors import InvalidActor, InvalidTarget, NotOwner
from mediahub.identifiers import as_entity_id, new_entity_id
from mediahub.ownership import authorize


def test_uuid_passes_through():
    value = new_entity_id()
    assert as_entity_id(value) is value


def test_string_and_bytes_forms_normalize_to_the_same_id():
    value = uuid.uuid4()
    assert as_entity_id(str(value)) == value
    assert as_entity_id(str(value).upper()) == value
    assert as_entity_id(f"  {value}  ") == value
    assert as_entity_id(value.bytes) == value
    assert as_entity_id(str(value).encode("ascii")) == value


@pytest.mark.parametrize("raw", ["", "not-an-id", "1234", b"\xff\xfe", 42])
def test_malformed_identifier_is_invalid_target(raw):
    with pytest.raises(InvalidTarget):
        as_entity_id(raw)


def test_owner_matches_across_representations():
    owner = uuid.uuid4()
    entity = SimpleNamespace(owner_id=str(owner))
    authorize(owner, entity)
    authorize(str(owner).upper(), entity)
    authorize(owner.bytes, SimpleNamespace(owner_id=owner))


def test_non_owner_is_rejected():
    entity = SimpleNamespace(owner_id=uuid.uuid4())
    with pytest.raises(NotOwner):
        authorize(uuid.uuid4(), entity)


def test_missing_actor_is_unauthenticated():
    with pytest.raises(InvalidActor):
        authorize(None, SimpleNamespace(owner_id=uuid.uuid4()))
