"""Block and stream cipher helpers backed by :mod:`cryptography`."""

from __future__ import annotations

from cryptography.hazmat.decrepit.ciphers.algorithms import ARC4
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

__all__ = [
    "rc4_crypt",
    "aes_cbc_encrypt",
    "aes_cbc_decrypt",
    "aes_ecb_encrypt",
    "aes_ecb_decrypt",
]

AES_BLOCK = 16


def rc4_crypt(key: bytes, data: bytes) -> bytes:
    """RC4 is symmetric; the same call encrypts and decrypts."""

    encryptor = Cipher(ARC4(key), mode=None).encryptor()
    return encryptor.update(data) + encryptor.finalize()


def aes_cbc_encrypt(key: bytes, data: bytes, iv: bytes, use_padding: bool = True) -> bytes:
    if use_padding:
        padder = padding.PKCS7(128).padder()
        data = padder.update(data) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(data) + encryptor.finalize()


def aes_cbc_decrypt(key: bytes, data: bytes, iv: bytes, use_padding: bool = True) -> bytes:
    # Some producers write ciphertext with a trailing partial block.
    usable = len(data) - len(data) % AES_BLOCK
    if usable <= 0:
        return b""
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    plaintext = decryptor.update(data[:usable]) + decryptor.finalize()
    if not use_padding:
        return plaintext

    unpadder = padding.PKCS7(128).unpadder()
    try:
        return unpadder.update(plaintext) + unpadder.finalize()
    except ValueError:
        return plaintext


def aes_ecb_encrypt(key: bytes, block: bytes) -> bytes:
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return encryptor.update(block) + encryptor.finalize()


def aes_ecb_decrypt(key: bytes, block: bytes) -> bytes:
    decryptor = Cipher(algorithms.AES(key), modes.ECB()).decryptor()
    return decryptor.update(block) + decryptor.finalize()
