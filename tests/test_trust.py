# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from pathlib import Path

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat
from mpid.trust import KeyType, load_private_key, save_private_key, sign, verify_signature


class TestSigning:

    @pytest.mark.parametrize('key_type', list(KeyType))
    def test_sign_and_verify(self, key_type: KeyType) -> None:
        private_key = key_type.generate()
        public_key = private_key.public_key()
        signature = sign(private_key, b'signed data')
        assert verify_signature(public_key, signature, b'signed data')
        assert not verify_signature(public_key, signature, b'other data')
        assert not verify_signature(key_type.generate().public_key(), signature, b'signed data')
        assert not verify_signature(public_key, bytes(len(signature)), b'signed data')

    def test_signature_sizes(self) -> None:
        # all supported signatures fit in the 1 byte length prefix of the envelope signatures
        for key_type in KeyType:
            assert len(sign(key_type.generate(), b'data')) <= 2**8 - 1

    def test_unsupported_keys(self) -> None:
        rsa_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        with pytest.raises(TypeError, match='Unsupported key type'):
            sign(rsa_key, b'data')
        assert verify_signature(rsa_key.public_key(), b'signature', b'data') is False
        assert verify_signature(None, b'signature', b'data') is False  # type: ignore[arg-type]


class TestPrivateKeys:

    def test_key_type(self) -> None:
        assert repr(KeyType.ED25519) == 'KeyType.ED25519'
        assert KeyType('ECDSA') is KeyType.ECDSA

    @pytest.mark.parametrize('key_type', list(KeyType))
    def test_save_and_load(self, key_type: KeyType, tmp_path: Path) -> None:
        private_key = key_type.generate()
        path = tmp_path / 'account.key'
        save_private_key(private_key, path)
        loaded_key = load_private_key(path)
        assert type(loaded_key) is type(private_key)
        assert verify_signature(loaded_key.public_key(), sign(private_key, b'data'), b'data')

    def test_save_and_load_with_password(self, tmp_path: Path) -> None:
        private_key = KeyType.ED25519.generate()
        path = tmp_path / 'account.key'
        save_private_key(private_key, path, password='secret')
        assert b'ENCRYPTED' in path.read_bytes()
        loaded_key = load_private_key(path, password='secret')
        assert verify_signature(loaded_key.public_key(), sign(private_key, b'data'), b'data')
        with pytest.raises(ValueError):  # noqa: PT011
            load_private_key(path, password='wrong')

    def test_load_unsupported_key(self, tmp_path: Path) -> None:
        rsa_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        path = tmp_path / 'rsa.key'
        path.write_bytes(rsa_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()))
        with pytest.raises(TypeError, match='Unsupported key type'):
            load_private_key(path)
