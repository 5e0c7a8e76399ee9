# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Detached signatures over byte strings."""

import logging

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey, EllipticCurvePublicKey
from cryptography.hazmat.primitives.asymmetric.ed448 import Ed448PrivateKey, Ed448PublicKey
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from mpid.python import reprproxy

from .private import PrivateKey, PublicKey

__all__ = 'sign', 'verify_signature'


log = logging.getLogger(__name__)


def sign(private_key: PrivateKey, data: bytes) -> bytes:
    match private_key:
        case Ed25519PrivateKey() | Ed448PrivateKey():
            return private_key.sign(data)
        case EllipticCurvePrivateKey():
            return private_key.sign(data, ec.ECDSA(hashes.SHA256()))
        case _:
            raise TypeError(f'Unsupported key type: {private_key.__class__.__qualname__!r} (expected {reprproxy(PrivateKey.__value__)})')


def verify_signature(public_key: PublicKey, signature: bytes, data: bytes) -> bool:
    """Check the signature over data. Keys of an unsupported type never verify anything."""
    try:
        match public_key:
            case Ed25519PublicKey() | Ed448PublicKey():
                public_key.verify(signature, data)
            case EllipticCurvePublicKey():
                public_key.verify(signature, data, ec.ECDSA(hashes.SHA256()))
            case _:
                log.debug('Cannot verify signature with an unsupported key type: %r (expected %s)', public_key.__class__.__qualname__, reprproxy(PublicKey.__value__))
                return False
    except InvalidSignature:
        return False
    return True
