#!/usr/bin/env python3
"""Key derivation and per-entry encryption.

Master password -> Argon2id(salt, cost, memlimit) -> 32-byte master.
The master is never used directly: BLAKE2b with two personalisation strings
splits it into the stored verifier and the entry encryption key, so the
verifier on disk reveals nothing usable for decryption.

Entries are sealed with SecretBox (XSalsa20-Poly1305). A blob is
nonce (24) || MAC (16) || ciphertext. No padding is applied, so a blob is
always exactly 40 bytes longer than its plaintext.
"""

import hmac

import nacl.encoding
import nacl.exceptions
import nacl.hash
import nacl.pwhash
import nacl.secret
import nacl.utils

from .errors import DecryptionFailed, InvalidConfig

SALT_SIZE = nacl.pwhash.argon2id.SALTBYTES
KEY_SIZE = nacl.secret.SecretBox.KEY_SIZE
NONCE_SIZE = nacl.secret.SecretBox.NONCE_SIZE
MAC_SIZE = nacl.secret.SecretBox.MACBYTES

# cost is the Argon2id opslimit (passes over memory)
DEFAULT_COST = nacl.pwhash.argon2id.OPSLIMIT_INTERACTIVE
MIN_COST = nacl.pwhash.argon2id.OPSLIMIT_MIN
MAX_COST = 32

DEFAULT_MEMLIMIT = nacl.pwhash.argon2id.MEMLIMIT_INTERACTIVE
MIN_MEMLIMIT = nacl.pwhash.argon2id.MEMLIMIT_MIN
MAX_MEMLIMIT = nacl.pwhash.argon2id.MEMLIMIT_SENSITIVE

VERIFIER_PERSON = b"srpk.verifier"
ENTRY_KEY_PERSON = b"srpk.entry-key"


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def check_params(cost, memlimit=DEFAULT_MEMLIMIT):
    """Validate Argon2id parameters, raising InvalidConfig if out of range."""
    if not _is_int(cost) or not MIN_COST <= cost <= MAX_COST:
        raise InvalidConfig(f"cost must be an integer between {MIN_COST} and {MAX_COST}")
    if not _is_int(memlimit) or not MIN_MEMLIMIT <= memlimit <= MAX_MEMLIMIT:
        raise InvalidConfig(
            f"memlimit must be an integer between {MIN_MEMLIMIT} and {MAX_MEMLIMIT} bytes"
        )


def generate_salt() -> bytes:
    return nacl.utils.random(SALT_SIZE)


def derive_key(password: str, salt: bytes, cost: int = DEFAULT_COST,
               memlimit: int = DEFAULT_MEMLIMIT) -> bytearray:
    """Derive the 32-byte master from a password using Argon2id.

    Same inputs always give the same output. The result is a bytearray so
    the caller can wipe it once the verifier and entry key are derived.
    """
    check_params(cost, memlimit)
    if len(salt) != SALT_SIZE:
        raise InvalidConfig(f"salt must be exactly {SALT_SIZE} bytes")

    return bytearray(nacl.pwhash.argon2id.kdf(
        KEY_SIZE,
        password.encode('utf-8'),
        bytes(salt),
        opslimit=cost,
        memlimit=memlimit,
    ))


def _subkey(master, person):
    return nacl.hash.blake2b(
        bytes(master),
        digest_size=KEY_SIZE,
        person=person,
        encoder=nacl.encoding.RawEncoder,
    )


def derive_verifier(master) -> bytes:
    """Value stored in the vault to check unlock attempts."""
    return _subkey(master, VERIFIER_PERSON)


def derive_entry_key(master) -> bytearray:
    """Key used to seal entry secrets."""
    return bytearray(_subkey(master, ENTRY_KEY_PERSON))


def verify(candidate: bytes, stored: bytes) -> bool:
    """Compare verifiers in constant time."""
    return hmac.compare_digest(bytes(candidate), bytes(stored))


def encrypt(key, plaintext: bytes) -> bytes:
    """Seal plaintext with a fresh random nonce."""
    box = nacl.secret.SecretBox(bytes(key))
    return bytes(box.encrypt(plaintext))


def decrypt(key, blob: bytes) -> bytes:
    """Open a blob produced by encrypt().

    Raises:
        DecryptionFailed: blob is truncated, was modified, or the key is wrong

    """
    if len(blob) < NONCE_SIZE + MAC_SIZE:
        raise DecryptionFailed(
            f"ciphertext blob is truncated ({len(blob)} bytes, need at least {NONCE_SIZE + MAC_SIZE})"
        )

    box = nacl.secret.SecretBox(bytes(key))
    try:
        return box.decrypt(bytes(blob))
    except nacl.exceptions.CryptoError:
        raise DecryptionFailed() from None


def wipe(buf) -> None:
    """Overwrite a bytearray with zeros in place."""
    if buf is None:
        return
    for i in range(len(buf)):
        buf[i] = 0
