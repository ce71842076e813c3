import asyncio

import pytest

from alephbft.blockchain.crypto import (
    KeyBox,
    PartialMultisignature,
    Signature,
    hash256,
)
from alephbft.nodes import NodeCount, NodeIndex


def test_hash256_of_empty_input_is_sha3_digest():
    assert hash256(b"").hex() == (
        "a7ffc6f8bf1ed76651c14756a061d662f580ff4de43b49fa82d80a4b80f8434a"
    )


def test_hash256_length_and_determinism():
    first = hash256(b"block")
    assert len(first) == 32
    assert first == hash256(bytearray(b"block"))
    assert first != hash256(b"blocks")


def test_add_signature_appends_new_index():
    partial = PartialMultisignature((NodeIndex(0),))
    extended = partial.add_signature(Signature(), 2)
    assert extended.signed_by == (NodeIndex(0), NodeIndex(2))
    assert partial.signed_by == (NodeIndex(0),)


def test_add_signature_ignores_duplicates():
    partial = PartialMultisignature((NodeIndex(1), NodeIndex(3)))
    assert partial.add_signature(Signature(), 3) == partial


def test_from_signature_starts_with_single_signer():
    keybox = KeyBox(4, 1)
    assert keybox.from_signature(Signature(), 5).signed_by == (NodeIndex(5),)


def test_is_complete_requires_more_than_two_thirds():
    keybox = KeyBox(4, 0)
    partial = keybox.from_signature(Signature(), 0)
    partial = partial.add_signature(Signature(), 1)
    assert not keybox.is_complete(b"msg", partial)
    partial = partial.add_signature(Signature(), 2)
    assert keybox.is_complete(b"msg", partial)


def test_repeated_signer_does_not_complete():
    keybox = KeyBox(4, 0)
    partial = keybox.from_signature(Signature(), 0)
    for _ in range(5):
        partial = partial.add_signature(Signature(), 0)
    assert not keybox.is_complete(b"msg", partial)


def test_keybox_identity():
    keybox = KeyBox(7, 3)
    assert keybox.index() == NodeIndex(3)
    assert keybox.node_count() == NodeCount(7)


@pytest.mark.asyncio
async def test_sign_and_verify():
    keybox = KeyBox(4, 2)
    signature = await keybox.sign(b"payload")
    assert signature == Signature()
    assert keybox.verify(b"payload", signature, 1) is True


def test_keybox_rejects_negative_index():
    with pytest.raises(ValueError):
        KeyBox(4, -1)