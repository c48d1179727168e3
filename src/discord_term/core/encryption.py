"""Symmetric message obfuscation.

AES-256-CBC with key and IV derived from a password the way OpenSSL's
EVP_BytesToKey does it (MD5, one round, no salt), PKCS7 padding, hex
ciphertext. Encrypted messages travel with the CIPHER_PREFIX marker.
"""

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from discord_term.core.errors import DecryptError

CIPHER_PREFIX = "$dt_"

_KEY_LEN = 32
_IV_LEN = 16


def _derive_key_iv(password: str) -> tuple[bytes, bytes]:
    secret = password.encode("utf-8")
    derived = b""
    block = b""
    while len(derived) < _KEY_LEN + _IV_LEN:
        digest = hashes.Hash(hashes.MD5())
        digest.update(block + secret)
        block = digest.finalize()
        derived += block
    return derived[:_KEY_LEN], derived[_KEY_LEN:_KEY_LEN + _IV_LEN]


def encrypt(message: str, password: str) -> str:
    key, iv = _derive_key_iv(password)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(message.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return (encryptor.update(padded) + encryptor.finalize()).hex()


def decrypt(ciphertext: str, password: str) -> str:
    """Decrypt hex ciphertext. Raises DecryptError on any failure."""
    key, iv = _derive_key_iv(password)
    try:
        raw = bytes.fromhex(ciphertext)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(raw) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plain = unpadder.update(padded) + unpadder.finalize()
        return plain.decode("utf-8")
    except ValueError as e:
        # bytes.fromhex, wrong block length, bad padding and bad UTF-8 all land here.
        raise DecryptError(str(e) or "invalid ciphertext") from e


def wrap(message: str, password: str) -> str:
    return CIPHER_PREFIX + encrypt(message, password)


def reveal(content: str, password: str) -> str:
    """Plaintext of a prefixed message, or ``content`` unchanged.

    A DecryptError means someone else's key or plain text that happens to
    carry the prefix; such messages are shown as-is and the error is not
    surfaced. This is intentional.
    """
    if not content.startswith(CIPHER_PREFIX):
        return content
    try:
        return decrypt(content[len(CIPHER_PREFIX):], password)
    except DecryptError:
        return content
