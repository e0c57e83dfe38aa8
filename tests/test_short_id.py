"""Tests for short content id allocation."""
import re

import pytest

from drop.services.short_id import ALPHABET, IdAllocationError, generate_content_id, random_short_id


class ExistsStub:
    """Reports a collision for the first `collisions` checks, then reports ids as free."""

    def __init__(self, collisions=0):
        self.collisions = collisions
        self.checked = []

    async def __call__(self, candidate):
        self.checked.append(candidate)
        return len(self.checked) <= self.collisions


def test_alphabet_is_base36():
    assert len(ALPHABET) == 36
    assert set(ALPHABET) == set("abcdefghijklmnopqrstuvwxyz0123456789")


def test_random_short_id_shape():
    for _ in range(200):
        value = random_short_id()
        assert len(value) == 6
        assert re.fullmatch(r"[a-z0-9]{6}", value)


@pytest.mark.asyncio
async def test_generate_returns_valid_id():
    exists = ExistsStub()
    value = await generate_content_id(exists)
    assert re.fullmatch(r"[a-z0-9]{6}", value)
    assert exists.checked == [value]


@pytest.mark.asyncio
async def test_generate_custom_length():
    value = await generate_content_id(ExistsStub(), length=10)
    assert re.fullmatch(r"[a-z0-9]{10}", value)


@pytest.mark.asyncio
async def test_fifty_allocations_are_distinct():
    ids = [await generate_content_id(ExistsStub()) for _ in range(50)]
    assert len(set(ids)) == 50


@pytest.mark.asyncio
async def test_retries_after_single_collision():
    exists = ExistsStub(collisions=1)
    value = await generate_content_id(exists)
    assert len(exists.checked) == 2
    assert value == exists.checked[1]


@pytest.mark.asyncio
async def test_raises_after_max_attempts():
    exists = ExistsStub(collisions=10**6)
    with pytest.raises(IdAllocationError):
        await generate_content_id(exists, max_attempts=5)
    assert len(exists.checked) == 5


@pytest.mark.asyncio
async def test_raises_with_custom_max_attempts():
    exists = ExistsStub(collisions=10**6)
    with pytest.raises(IdAllocationError):
        await generate_content_id(exists, max_attempts=3)
    assert len(exists.checked) == 3
