"""PGP key decoding and message crypto backed by PGPy.

Keys in the user files are stored unarmored: either plain base64 of the
binary key, or the radix-64 body of an armored key (base64 plus a
``=XXXX`` CRC-24 checksum line). Armor headers and spaces are rejected.
"""

import base64
import binascii
from datetime import datetime, timezone
from typing import Any

import pgpy
from pgpy.constants import KeyFlags
from pgpy.errors import PGPError
from pgpy.types import Armorable

from converge.errors import PgpError

_PUBLIC_KEY_TAG = 6

PUBLIC_KEY_BLOCK = "PUBLIC KEY BLOCK"
MESSAGE_BLOCK = "MESSAGE"

_ENCRYPT_FLAGS = {KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage}


def armor(body: str, block_type: str = PUBLIC_KEY_BLOCK) -> str:
    """Wrap a headerless radix-64 body in armor lines."""
    body = body.strip("\n")
    return f"-----BEGIN PGP {block_type}-----\n\n{body}\n-----END PGP {block_type}-----\n"


def decode_base64_entity(encoded: str, block_type: str = PUBLIC_KEY_BLOCK) -> bytes:
    """Decode plain base64, falling back to a radix-64 body with checksum."""
    try:
        return base64.b64decode("".join(encoded.split()), validate=True)
    except binascii.Error as decode_error:
        armored = armor(encoded, block_type)
        if not Armorable.is_ascii(armored):
            raise PgpError(f"error decoding given PGP key: {decode_error}") from decode_error
        try:
            unarmored = Armorable.ascii_unarmor(armored)
        except (PGPError, ValueError, binascii.Error) as e:
            raise PgpError(f"error decoding given ASCII-armored PGP key: {e}") from e

    body = bytes(unarmored["body"])
    if unarmored["crc"] != Armorable.crc24(bytearray(body)):
        raise PgpError("error decoding given ASCII-armored PGP key: armor checksum mismatch")
    return body


def first_packet_tag(data: bytes) -> int:
    """Tag of the first OpenPGP packet in data."""
    if not data:
        raise PgpError("error parsing given PGP key: empty key")
    header = data[0]
    if not header & 0x80:
        raise PgpError("error parsing given PGP key: invalid packet header")
    if header & 0x40:
        return header & 0x3F
    return (header >> 2) & 0x0F


def _key_expired(key: Any, now: datetime) -> bool:
    if key.is_primary:
        expires = key.expires_at
    else:
        binding = next(key.self_signatures, None)
        if binding is None or binding.key_expiration is None:
            return False
        expires = key.created + binding.key_expiration
    return expires is not None and expires <= now


def _can_encrypt(key: Any) -> bool:
    try:
        return bool(_ENCRYPT_FLAGS & set(key._get_key_flags()))
    except (PGPError, StopIteration):
        return False


def check_encryption_key(key: Any) -> None:
    """Raise PgpError unless key has an unexpired encryption-capable key.

    PGPy only warns when encrypting to an expired key.
    """
    now = datetime.now(timezone.utc)
    if _key_expired(key, now):
        raise PgpError(
            f"error setting up encryption for PGP message: key {key.fingerprint.keyid} expired at {key.expires_at}"
        )
    for candidate in (key, *key.subkeys.values()):
        if _can_encrypt(candidate) and not _key_expired(candidate, now):
            return
    raise PgpError(
        f"error setting up encryption for PGP message: key {key.fingerprint.keyid} has no valid encryption key"
    )


class PgpCodec:
    """PgpCodecProtocol implementation."""

    def decode_public_key(self, encoded: str) -> Any:
        """Decode a user's public key.

        Raises:
            PgpError: For armor headers, spaces, undecodable data or a first
                packet that is not a public key
        """
        encoded = encoded.rstrip(" \n\r").strip()
        if encoded.startswith("-----BEGIN"):
            raise PgpError("please remove type headers")
        if " " in encoded:
            raise PgpError("given PGP key cannot contain spaces")

        data = decode_base64_entity(encoded)
        if first_packet_tag(data) != _PUBLIC_KEY_TAG:
            raise PgpError("given PGP key is not a Public Key")

        try:
            key, _ = pgpy.PGPKey.from_blob(data)
        except Exception as e:
            raise PgpError(f"error parsing given PGP key: {e}") from e
        return key

    def test_encrypt(self, key: Any) -> None:
        """Raise PgpError if key cannot encrypt a message."""
        self.encrypt(key, b"Hello World")

    def encrypt(self, key: Any, plaintext: bytes) -> bytes:
        """Encrypt plaintext for key, returning the binary message."""
        check_encryption_key(key)
        try:
            message = pgpy.PGPMessage.new(bytes(plaintext))
            return bytes(key.encrypt(message))
        except Exception as e:
            raise PgpError(f"error encrypting PGP message: {e}") from e

    def decrypt(self, encoded_message: str, private_key: str, passphrase: str) -> bytes:
        """Decrypt a base64 encoded binary message with an armored private key."""
        data = decode_base64_entity(encoded_message, MESSAGE_BLOCK)
        try:
            key, _ = pgpy.PGPKey.from_blob(private_key)
            message = pgpy.PGPMessage.from_blob(data)
            if key.is_protected:
                with key.unlock(passphrase):
                    decrypted = key.decrypt(message)
            else:
                decrypted = key.decrypt(message)
        except Exception as e:
            raise PgpError(f"error decrypting PGP message: {e}") from e

        content = decrypted.message
        if isinstance(content, str):
            return content.encode("utf-8")
        return bytes(content)


__all__ = [
    "PgpCodec",
    "armor",
    "check_encryption_key",
    "decode_base64_entity",
    "first_packet_tag",
]
