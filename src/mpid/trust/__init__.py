# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .private import KeyType, PrivateKey, PublicKey, load_private_key, save_private_key
from .signing import sign, verify_signature

__all__ = 'KeyType', 'PrivateKey', 'PublicKey', 'load_private_key', 'save_private_key', 'sign', 'verify_signature'
