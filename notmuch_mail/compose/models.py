import email.charset
import mimetypes
from collections.abc import Iterable
from dataclasses import dataclass
from email.utils import formataddr, getaddresses
from pathlib import Path

from pydantic import BaseModel

from notmuch_mail.exceptions import InvalidInput
from notmuch_mail.log import logger

# RFC 2047 encoded-words are always emitted as base64 (=?utf-8?b?...?=)
UTF8_B64 = email.charset.Charset("utf-8")
UTF8_B64.header_encoding = email.charset.BASE64
UTF8_B64.body_encoding = email.charset.BASE64


class MailAddress(BaseModel):
    """Display name plus addr-spec; two addresses are equal when their addr-specs match"""

    address: str
    name: str = ""

    @classmethod
    def parse(cls, text: str, field: str = "address") -> "MailAddress":
        addresses = cls.parse_list(text, field)
        if len(addresses) != 1:
            raise InvalidInput(field, f"expected exactly one address, got {text!r}")
        return addresses[0]

    @classmethod
    def parse_list(cls, values: str | Iterable[str] | None, field: str = "address") -> list["MailAddress"]:
        if values is None:
            return []
        if isinstance(values, str):
            values = [values]
        result = []
        for value in values:
            if not value or not value.strip():
                continue
            parsed = [(name, address) for name, address in getaddresses([value]) if name or address]
            if not parsed:
                raise InvalidInput(field, f"invalid address: {value!r}")
            for name, address in parsed:
                if "@" not in address or any(c.isspace() for c in address):
                    raise InvalidInput(field, f"invalid address: {address or name!r}")
                result.append(cls(address=address, name=name))
        return result

    @classmethod
    def coerce(cls, value: "str | MailAddress", field: str = "address") -> "MailAddress":
        return value if isinstance(value, MailAddress) else cls.parse(value, field)

    @property
    def normalized(self) -> str:
        return self.address.strip().lower()

    @property
    def domain(self) -> str:
        return self.address.rpartition("@")[2]

    @property
    def display(self) -> str:
        """Human readable form, never encoded"""
        return self.name or self.address

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MailAddress):
            return self.normalized == other.normalized
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.normalized)

    def __str__(self) -> str:
        return formataddr((self.name, self.address), charset=UTF8_B64)


def unique_addresses(addresses: Iterable[MailAddress], exclude: Iterable[MailAddress] = ()) -> list[MailAddress]:
    """Drop duplicates (by addr-spec) and anything in ``exclude``, keeping first-seen order"""
    seen = {address.normalized for address in exclude}
    result = []
    for address in addresses:
        if address.normalized in seen:
            continue
        seen.add(address.normalized)
        result.append(address)
    return result


class Attachment(BaseModel):
    filename: str
    content_type: str = "application/octet-stream"
    data: bytes

    @classmethod
    def from_path(cls, file_path: str | Path, content_type: str | None = None) -> "Attachment":
        path = Path(file_path)
        if not path.exists():
            msg = f"Attachment file not found: {file_path}"
            logger.error(msg)
            raise InvalidInput("attachment", msg)

        if not path.is_file():
            msg = f"Attachment path is not a file: {file_path}"
            logger.error(msg)
            raise InvalidInput("attachment", msg)

        if content_type is None:
            content_type, _ = mimetypes.guess_type(str(path))
        if content_type is None:
            content_type = "application/octet-stream"

        return cls(filename=path.name, content_type=content_type, data=path.read_bytes())

    @property
    def maintype(self) -> str:
        return self.content_type.split("/", 1)[0]

    @property
    def subtype(self) -> str:
        return self.content_type.split("/", 1)[1] if "/" in self.content_type else "octet-stream"


@dataclass(frozen=True)
class OutgoingMessage:
    """An immutable RFC 5322 message ready for submission"""

    raw: bytes
    message_id: str
    sender: MailAddress
    envelope_recipients: tuple[str, ...]

    def __bytes__(self) -> bytes:
        return self.raw
