"""Standard security handler of the PDF format.

Implements password based key derivation for revisions 2 (RC4, 40 bit),
3 (RC4, 128 bit), 4 (AES-128) and 6 (AES-256), construction of fresh
encryption dictionaries, and the per-object string/stream transform.
Revision 6 is the default for new protection.

Randomness is always taken from an explicitly passed ``random_bytes``
callable so that tests can seed it.
"""

from __future__ import annotations

import secrets
import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from hashlib import md5, sha256, sha384, sha512
from hmac import compare_digest
from typing import Any, Callable

from pypdf.generic import (
    BooleanObject,
    ByteStringObject,
    DictionaryObject,
    NameObject,
    NumberObject,
    TextStringObject,
    encode_pdfdocencoding,
)

from .primitives import aes_cbc_decrypt, aes_cbc_encrypt, aes_ecb_decrypt, aes_ecb_encrypt, rc4_crypt
from .saslprep import saslprep
from ..core.utils import get_logger
from ..exceptions import UnsupportedEncryptionRevision, WrongPassword

__all__ = [
    "PASSWORD_PADDING",
    "RandomBytes",
    "Revision",
    "Permissions",
    "EncryptionDictionary",
    "DerivedKey",
    "ObjectCipher",
    "normalize_password",
    "derive_keys",
    "build_encryption",
    "object_key",
    "transform",
]

LOGGER = get_logger("pdfguard.crypto")

PASSWORD_PADDING = bytes.fromhex(
    "28bf4e5e4e758a4164004e56fffa01082e2e00b6d0683e802f0ca9fe6453697a"
)

RandomBytes = Callable[[int], bytes]

_RESERVED_PERMISSION_BITS = 0xFFFFF0C0


def _as_signed(value: int) -> int:
    return struct.unpack("<i", struct.pack("<I", value & 0xFFFFFFFF))[0]


class Revision(IntEnum):
    """Supported revisions of the standard security handler."""

    RC4_40 = 2
    RC4_128 = 3
    AES_128 = 4
    AES_256 = 6

    @property
    def version(self) -> int:
        return _REVISION_PARAMETERS[self][0]

    @property
    def key_length(self) -> int:
        return _REVISION_PARAMETERS[self][1]

    @property
    def method(self) -> str:
        return _REVISION_PARAMETERS[self][2]

    @property
    def min_pdf_version(self) -> str:
        return _REVISION_PARAMETERS[self][3]


# revision -> (/V, key length in bytes, crypt filter method, minimum header version)
_REVISION_PARAMETERS = {
    Revision.RC4_40: (1, 5, "/V2", "1.3"),
    Revision.RC4_128: (2, 16, "/V2", "1.4"),
    Revision.AES_128: (4, 16, "/AESV2", "1.6"),
    Revision.AES_256: (5, 32, "/AESV3", "1.7"),
}


class Permissions(IntFlag):
    """User access permission bits of the ``/P`` entry."""

    NONE = 0
    PRINT = 1 << 2
    MODIFY = 1 << 3
    COPY = 1 << 4
    ANNOTATE = 1 << 5
    FILL_FORMS = 1 << 8
    EXTRACT_FOR_ACCESSIBILITY = 1 << 9
    ASSEMBLE = 1 << 10
    PRINT_HIGH_QUALITY = 1 << 11
    ALL = (
        PRINT
        | MODIFY
        | COPY
        | ANNOTATE
        | FILL_FORMS
        | EXTRACT_FOR_ACCESSIBILITY
        | ASSEMBLE
        | PRINT_HIGH_QUALITY
    )

    def to_p(self) -> int:
        """Return the signed ``/P`` value with all reserved bits set."""

        return _as_signed((int(self) | _RESERVED_PERMISSION_BITS) & 0xFFFFFFFC)

    @classmethod
    def from_p(cls, value: int) -> "Permissions":
        return cls(int(value) & int(cls.ALL))


def _string_bytes(value: Any) -> bytes:
    if isinstance(value, ByteStringObject):
        return bytes(value)
    if isinstance(value, TextStringObject):
        return value.original_bytes
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return b""


@dataclass(slots=True)
class EncryptionDictionary:
    """Typed view of a standard security handler ``/Encrypt`` dictionary."""

    revision: int
    version: int
    key_length: int
    permissions: int
    owner_key: bytes
    user_key: bytes
    owner_encrypted_key: bytes | None = None
    user_encrypted_key: bytes | None = None
    encrypted_permissions: bytes | None = None
    method: str = "/V2"
    encrypt_metadata: bool = True

    @property
    def use_aes(self) -> bool:
        return self.method in ("/AESV2", "/AESV3")

    @property
    def granted(self) -> Permissions:
        return Permissions.from_p(self.permissions)

    @classmethod
    def from_pdf_object(cls, dictionary: DictionaryObject) -> "EncryptionDictionary":
        """Validate and convert a pypdf dictionary; indirect values are resolved."""

        def value(key: str, default: Any = None) -> Any:
            return dictionary[key] if key in dictionary else default

        handler = value("/Filter")
        if handler != "/Standard":
            raise UnsupportedEncryptionRevision(f"Unsupported security handler {handler}")

        revision = int(value("/R", 0))
        version = int(value("/V", 0))
        if revision not in (2, 3, 4, 6):
            raise UnsupportedEncryptionRevision(
                f"Unsupported standard security handler revision {revision}"
            )

        method = "/V2"
        key_length = 5 if revision == 2 else int(value("/Length", 40)) // 8
        encrypt_metadata = True
        if version >= 4:
            stream_filter = value("/StmF", "/Identity")
            string_filter = value("/StrF", "/Identity")
            if stream_filter != string_filter or stream_filter == "/Identity":
                raise UnsupportedEncryptionRevision(
                    f"Unsupported crypt filter combination {stream_filter}/{string_filter}"
                )
            filters = value("/CF")
            if not isinstance(filters, DictionaryObject) or stream_filter not in filters:
                raise UnsupportedEncryptionRevision(f"Crypt filter {stream_filter} is not defined")
            method = str(filters[stream_filter].get("/CFM", "/None"))
            if method not in ("/V2", "/AESV2", "/AESV3"):
                raise UnsupportedEncryptionRevision(f"Unsupported crypt filter method {method}")
            if method == "/AESV2":
                key_length = 16
            elif method == "/AESV3":
                key_length = 32
            flag = value("/EncryptMetadata", True)
            encrypt_metadata = flag.value if isinstance(flag, BooleanObject) else bool(flag)

        if not 5 <= key_length <= 32:
            raise UnsupportedEncryptionRevision(f"Unsupported key length {key_length * 8} bits")

        owner_key = _string_bytes(value("/O"))
        user_key = _string_bytes(value("/U"))
        entries = cls(
            revision=revision,
            version=version,
            key_length=key_length,
            permissions=int(value("/P", -4)),
            owner_key=owner_key,
            user_key=user_key,
            method=method,
            encrypt_metadata=encrypt_metadata,
        )
        if revision >= 6:
            entries.owner_encrypted_key = _string_bytes(value("/OE"))
            entries.user_encrypted_key = _string_bytes(value("/UE"))
            entries.encrypted_permissions = _string_bytes(value("/Perms"))
            if len(owner_key) < 48 or len(user_key) < 48:
                raise UnsupportedEncryptionRevision("/O and /U must hold 48 bytes for revision 6")
            if len(entries.owner_encrypted_key) != 32 or len(entries.user_encrypted_key) != 32:
                raise UnsupportedEncryptionRevision("/OE and /UE must hold 32 bytes for revision 6")
        elif len(owner_key) < 32 or len(user_key) < 32:
            raise UnsupportedEncryptionRevision("/O and /U must hold 32 bytes")
        return entries

    def as_pdf_object(self) -> DictionaryObject:
        result = DictionaryObject()
        result[NameObject("/Filter")] = NameObject("/Standard")
        result[NameObject("/V")] = NumberObject(self.version)
        result[NameObject("/R")] = NumberObject(self.revision)
        result[NameObject("/Length")] = NumberObject(self.key_length * 8)
        result[NameObject("/P")] = NumberObject(self.permissions)
        result[NameObject("/O")] = ByteStringObject(self.owner_key)
        result[NameObject("/U")] = ByteStringObject(self.user_key)

        if self.version >= 4:
            crypt_filter = DictionaryObject()
            crypt_filter[NameObject("/Type")] = NameObject("/CryptFilter")
            crypt_filter[NameObject("/AuthEvent")] = NameObject("/DocOpen")
            crypt_filter[NameObject("/CFM")] = NameObject(self.method)
            crypt_filter[NameObject("/Length")] = NumberObject(self.key_length)
            filters = DictionaryObject()
            filters[NameObject("/StdCF")] = crypt_filter
            result[NameObject("/CF")] = filters
            result[NameObject("/StmF")] = NameObject("/StdCF")
            result[NameObject("/StrF")] = NameObject("/StdCF")
            result[NameObject("/EncryptMetadata")] = BooleanObject(self.encrypt_metadata)

        if self.revision >= 6:
            result[NameObject("/OE")] = ByteStringObject(self.owner_encrypted_key or b"")
            result[NameObject("/UE")] = ByteStringObject(self.user_encrypted_key or b"")
            result[NameObject("/Perms")] = ByteStringObject(self.encrypted_permissions or b"")
        return result


@dataclass(frozen=True, slots=True)
class DerivedKey:
    """File encryption key; lives only for the duration of one pass."""

    file_key: bytes
    revision: int
    method: str
    role: str = "user"

    @property
    def use_aes(self) -> bool:
        return self.method in ("/AESV2", "/AESV3")

    def __repr__(self) -> str:
        return f"DerivedKey(revision={self.revision}, method={self.method!r}, role={self.role!r})"


# -- Password handling -----------------------------------------------------------


def normalize_password(password: str | bytes, revision: int) -> bytes:
    """Encode ``password`` the way ``revision`` expects it.

    Revision 6 uses SASLprep and UTF-8 truncated to 127 bytes; older
    revisions use PDFDocEncoding truncated to 32 bytes.
    """

    if isinstance(password, (bytes, bytearray)):
        return bytes(password)[: 127 if revision >= 6 else 32]
    if revision >= 6:
        try:
            prepared = saslprep(password)
        except ValueError:
            LOGGER.debug("Password rejected by SASLprep; using it unprepared")
            prepared = password
        return prepared.encode("utf-8")[:127]
    try:
        encoded = encode_pdfdocencoding(password)
    except UnicodeEncodeError:
        encoded = password.encode("utf-8")
    return encoded[:32]


def _pad_password(password: bytes) -> bytes:
    return (password + PASSWORD_PADDING)[:32]


def _xor_key(key: bytes, counter: int) -> bytes:
    return bytes(byte ^ counter for byte in key)


# -- Revisions 2 to 4 ------------------------------------------------------------


def _legacy_file_key(
    password: bytes,
    revision: int,
    key_length: int,
    owner_key: bytes,
    permissions: int,
    first_id: bytes,
    encrypt_metadata: bool = True,
) -> bytes:
    digest = md5(_pad_password(password))
    digest.update(owner_key[:32])
    digest.update(struct.pack("<I", permissions & 0xFFFFFFFF))
    digest.update(first_id)
    if revision >= 4 and not encrypt_metadata:
        digest.update(b"\xff\xff\xff\xff")
    key = digest.digest()
    if revision >= 3:
        for _ in range(50):
            key = md5(key[:key_length]).digest()
    return key[:key_length]


def _owner_rc4_key(owner_password: bytes, revision: int, key_length: int) -> bytes:
    key = md5(_pad_password(owner_password)).digest()
    if revision >= 3:
        for _ in range(50):
            key = md5(key).digest()
    return key[:key_length]


def _compute_owner_key(
    owner_password: bytes, user_password: bytes, revision: int, key_length: int
) -> bytes:
    key = _owner_rc4_key(owner_password, revision, key_length)
    value = rc4_crypt(key, _pad_password(user_password))
    if revision >= 3:
        for counter in range(1, 20):
            value = rc4_crypt(_xor_key(key, counter), value)
    return value


def _compute_user_key(file_key: bytes, revision: int, first_id: bytes) -> bytes:
    if revision == 2:
        return rc4_crypt(file_key, PASSWORD_PADDING)
    value = rc4_crypt(file_key, md5(PASSWORD_PADDING + first_id).digest())
    for counter in range(1, 20):
        value = rc4_crypt(_xor_key(file_key, counter), value)
    return value + bytes(16)


def _authenticate_legacy_user(
    password: bytes, dictionary: EncryptionDictionary, first_id: bytes
) -> bytes | None:
    revision = dictionary.revision
    file_key = _legacy_file_key(
        password,
        revision,
        dictionary.key_length,
        dictionary.owner_key,
        dictionary.permissions,
        first_id,
        dictionary.encrypt_metadata,
    )
    expected = _compute_user_key(file_key, revision, first_id)
    compared = 32 if revision == 2 else 16
    if compare_digest(expected[:compared], dictionary.user_key[:compared]):
        return file_key
    return None


def _recover_user_password(owner_password: bytes, dictionary: EncryptionDictionary) -> bytes:
    key = _owner_rc4_key(owner_password, dictionary.revision, dictionary.key_length)
    value = dictionary.owner_key[:32]
    if dictionary.revision == 2:
        return rc4_crypt(key, value)
    for counter in range(19, -1, -1):
        value = rc4_crypt(_xor_key(key, counter), value)
    return value


# -- Revision 6 ------------------------------------------------------------------


def _r6_hash(password: bytes, salt: bytes, user_key: bytes = b"") -> bytes:
    """Iterated SHA-2/AES hash of ISO 32000-2 (algorithm 2.B)."""

    k = sha256(password + salt + user_key).digest()
    hashes = (sha256, sha384, sha512)
    round_no = last_byte = 0
    while round_no < 64 or last_byte > round_no - 32:
        k1 = (password + k + user_key) * 64
        e = aes_cbc_encrypt(k[:16], k1, k[16:32], use_padding=False)
        # 256 is 1 mod 3, so the byte sum gives the big-endian value mod 3.
        k = hashes[sum(e[:16]) % 3](e).digest()
        last_byte = e[-1]
        round_no += 1
    return k[:32]


def _authenticate_r6(password: bytes, dictionary: EncryptionDictionary) -> tuple[bytes, str] | None:
    user_key = dictionary.user_key[:48]
    owner_key = dictionary.owner_key[:48]

    if compare_digest(_r6_hash(password, user_key[32:40]), user_key[:32]):
        intermediate = _r6_hash(password, user_key[40:48])
        sealed, role = dictionary.user_encrypted_key, "user"
    elif compare_digest(_r6_hash(password, owner_key[32:40], user_key), owner_key[:32]):
        intermediate = _r6_hash(password, owner_key[40:48], user_key)
        sealed, role = dictionary.owner_encrypted_key, "owner"
    else:
        return None

    file_key = aes_cbc_decrypt(intermediate, sealed or b"", bytes(16), use_padding=False)
    if dictionary.encrypted_permissions and len(dictionary.encrypted_permissions) == 16:
        perms = aes_ecb_decrypt(file_key, dictionary.encrypted_permissions)
        if perms[9:12] != b"adb":
            LOGGER.warning("Encrypted /Perms entry failed validation")
    return file_key, role


# -- Public API ------------------------------------------------------------------


def derive_keys(
    password: str | bytes, doc_id: bytes, dictionary: EncryptionDictionary
) -> DerivedKey:
    """Derive the file key, trying ``password`` as user then owner password.

    Raises :class:`~pdfguard.exceptions.WrongPassword` when neither stored
    verification hash matches.
    """

    pw_bytes = normalize_password(password, dictionary.revision)
    if dictionary.revision >= 6:
        result = _authenticate_r6(pw_bytes, dictionary)
        if result is None:
            raise WrongPassword()
        file_key, role = result
        return DerivedKey(file_key, dictionary.revision, dictionary.method, role)

    file_key = _authenticate_legacy_user(pw_bytes, dictionary, doc_id)
    if file_key is not None:
        return DerivedKey(file_key, dictionary.revision, dictionary.method, "user")

    user_password = _recover_user_password(pw_bytes, dictionary)
    file_key = _authenticate_legacy_user(user_password, dictionary, doc_id)
    if file_key is not None:
        return DerivedKey(file_key, dictionary.revision, dictionary.method, "owner")
    raise WrongPassword()


def build_encryption(
    user_password: str | bytes,
    owner_password: str | bytes,
    *,
    doc_id: bytes,
    revision: Revision = Revision.AES_256,
    permissions: Permissions = Permissions.NONE,
    encrypt_metadata: bool = True,
    random_bytes: RandomBytes = secrets.token_bytes,
) -> tuple[EncryptionDictionary, DerivedKey]:
    """Create a fresh encryption dictionary and the matching file key."""

    revision = Revision(revision)
    user_bytes = normalize_password(user_password, revision)
    owner_bytes = normalize_password(owner_password, revision)
    p_value = Permissions(permissions).to_p()
    if revision < Revision.AES_128:
        encrypt_metadata = True

    if revision == Revision.AES_256:
        file_key = random_bytes(32)
        user_validation, user_salt = random_bytes(8), random_bytes(8)
        user_key = _r6_hash(user_bytes, user_validation) + user_validation + user_salt
        user_sealed = aes_cbc_encrypt(
            _r6_hash(user_bytes, user_salt), file_key, bytes(16), use_padding=False
        )

        owner_validation, owner_salt = random_bytes(8), random_bytes(8)
        owner_key = (
            _r6_hash(owner_bytes, owner_validation, user_key) + owner_validation + owner_salt
        )
        owner_sealed = aes_cbc_encrypt(
            _r6_hash(owner_bytes, owner_salt, user_key), file_key, bytes(16), use_padding=False
        )

        perms_block = (
            struct.pack("<I", p_value & 0xFFFFFFFF)
            + b"\xff" * 4
            + (b"T" if encrypt_metadata else b"F")
            + b"adb"
            + random_bytes(4)
        )
        dictionary = EncryptionDictionary(
            revision=int(revision),
            version=revision.version,
            key_length=revision.key_length,
            permissions=p_value,
            owner_key=owner_key,
            user_key=user_key,
            owner_encrypted_key=owner_sealed,
            user_encrypted_key=user_sealed,
            encrypted_permissions=aes_ecb_encrypt(file_key, perms_block),
            method=revision.method,
            encrypt_metadata=encrypt_metadata,
        )
    else:
        key_length = revision.key_length
        owner_key = _compute_owner_key(owner_bytes, user_bytes, revision, key_length)
        file_key = _legacy_file_key(
            user_bytes, revision, key_length, owner_key, p_value, doc_id, encrypt_metadata
        )
        dictionary = EncryptionDictionary(
            revision=int(revision),
            version=revision.version,
            key_length=key_length,
            permissions=p_value,
            owner_key=owner_key,
            user_key=_compute_user_key(file_key, revision, doc_id),
            method=revision.method,
            encrypt_metadata=encrypt_metadata,
        )

    LOGGER.debug("Built revision %s encryption dictionary (%s)", int(revision), revision.method)
    return dictionary, DerivedKey(file_key, int(revision), revision.method, "owner")


def object_key(key: DerivedKey, number: int, generation: int) -> bytes:
    """Per-object key; revision 6 uses the file key directly."""

    if key.revision >= 6:
        return key.file_key
    material = key.file_key + struct.pack("<i", number)[:3] + struct.pack("<i", generation)[:2]
    if key.use_aes:
        material += b"sAlT"
    return md5(material).digest()[: min(len(key.file_key) + 5, 16)]


def transform(
    payload: bytes,
    key: DerivedKey,
    number: int,
    generation: int,
    *,
    decrypt: bool = False,
    random_bytes: RandomBytes = secrets.token_bytes,
) -> bytes:
    """Encrypt (or decrypt) one string or stream payload of object ``number``."""

    local_key = object_key(key, number, generation)
    if not key.use_aes:
        return rc4_crypt(local_key, payload)
    if decrypt:
        return aes_cbc_decrypt(local_key, payload[16:], payload[:16])
    iv = random_bytes(16)
    return iv + aes_cbc_encrypt(local_key, payload, iv)


class ObjectCipher:
    """Binds a :class:`DerivedKey` and a random source for one rewrite pass."""

    def __init__(self, key: DerivedKey, random_bytes: RandomBytes = secrets.token_bytes) -> None:
        self.key = key
        self.random_bytes = random_bytes

    def encrypt(self, payload: bytes, number: int, generation: int) -> bytes:
        return transform(payload, self.key, number, generation, random_bytes=self.random_bytes)

    def decrypt(self, payload: bytes, number: int, generation: int) -> bytes:
        return transform(payload, self.key, number, generation, decrypt=True)
