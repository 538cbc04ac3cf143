from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum

_MASK_64 = (1 << 64) - 1


class MemberKind(Enum):
    METHOD = "method"
    PROPERTY = "property"
    ATTRIBUTE = "attribute"


def stable_hash(text: str) -> int:
    """
    Hash text into a 64-bit integer that is identical across processes.

    The builtin ``hash`` is salted per interpreter for strings, so it cannot be used for keys
    that should compare equal between runs.
    """
    digest = hashlib.blake2b(text.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def type_key(owner: type) -> str:
    return f"{owner.__module__}.{owner.__qualname__}"


def combine_hashes(owner_hash: int, member_hash: int) -> int:
    return ((owner_hash * 397) ^ member_hash) & _MASK_64


@dataclass(frozen=True, slots=True)
class MemberIdentity:
    """
    Stable key identifying one member of a mocked type.

    Setups, recorded calls and verifications are matched on this key. Two identities are
    equal iff their combined owner/member hash is equal; every other field is diagnostic only.

    Attributes:
        owner_key (str): ``module.qualname`` of the owning type.
        member_hash (int): Stable hash of the member name and its full signature text, so
            overloads sharing a name do not collide.
        display_name (str): Human readable name used in error messages.
        kind (MemberKind): Method, property or (static) attribute.
    """

    owner_key: str = field(compare=False)
    member_hash: int = field(compare=False)
    display_name: str = field(compare=False)
    kind: MemberKind = field(default=MemberKind.METHOD, compare=False)
    _combined: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_combined",
            combine_hashes(stable_hash(self.owner_key), self.member_hash),
        )

    @classmethod
    def for_member(
        cls,
        owner: type,
        name: str,
        *,
        signature_text: str = "",
        kind: MemberKind = MemberKind.METHOD,
        display_name: str | None = None,
    ) -> MemberIdentity:
        return cls(
            owner_key=type_key(owner),
            member_hash=stable_hash(f"{name}{signature_text}"),
            display_name=display_name or name,
            kind=kind,
        )

    @property
    def combined_hash(self) -> int:
        return self._combined

    def belongs_to(self, owner: type) -> bool:
        return self.owner_key == type_key(owner)

    def __str__(self) -> str:
        return self.display_name
