"""BIP32 key paths.

A key path is the sequence of child indexes leading from a master key to a
derived key. Indexes at or above 2^31 are hardened and can only be derived
with the private key, so the public side of a wallet can only walk the
non-hardened tail of a path.
"""

from dataclasses import dataclass
from typing import Iterable, Union

from bip_utils import Bip32KeyIndex, Bip32PathParser

HARDENED_OFFSET = 0x80000000


@dataclass(frozen=True)
class KeyPath:
    """Immutable BIP32 key path.

    Example:
        path = KeyPath.parse("m/84'/0'/0'/1/7")
        path.account_key_path()  # KeyPath("m/1/7")
    """

    indexes: tuple[int, ...] = ()

    def __init__(self, indexes: Iterable[int] = ()):
        object.__setattr__(self, "indexes", tuple(int(i) for i in indexes))
        for index in self.indexes:
            if index < 0 or index > 0xFFFFFFFF:
                raise ValueError(f"Invalid BIP32 index: {index}")

    @classmethod
    def parse(cls, path: Union[str, "KeyPath", Iterable[int]]) -> "KeyPath":
        """Build a key path from a string like m/84'/0'/0' or a list of indexes."""
        if isinstance(path, KeyPath):
            return path
        if isinstance(path, str):
            text = path.strip()
            if text in ("", "m"):
                return cls()
            try:
                parsed = Bip32PathParser.Parse(text)
            except Exception as e:
                raise ValueError(f"Invalid key path '{path}': {e}") from e
            return cls(parsed.ToList())
        return cls(path)

    @property
    def depth(self) -> int:
        return len(self.indexes)

    @property
    def last_index(self) -> int:
        """Index of the leaf, 0 for the master path."""
        return self.indexes[-1] if self.indexes else 0

    @property
    def parent(self) -> "KeyPath":
        if not self.indexes:
            raise ValueError("The master path has no parent")
        return KeyPath(self.indexes[:-1])

    @staticmethod
    def is_hardened(index: int) -> bool:
        return Bip32KeyIndex(index).IsHardened()

    def account_key_path(self) -> "KeyPath":
        """Return the longest non-hardened suffix of this path.

        For m/84'/0'/0'/1/7 this is 1/7: the part derivable from the account
        extended public key.
        """
        start = len(self.indexes)
        while start > 0 and not self.is_hardened(self.indexes[start - 1]):
            start -= 1
        return KeyPath(self.indexes[start:])

    def derive(self, *indexes: int) -> "KeyPath":
        """Append child indexes."""
        return KeyPath(self.indexes + tuple(indexes))

    def __len__(self) -> int:
        return len(self.indexes)

    def __iter__(self):
        return iter(self.indexes)

    def __str__(self) -> str:
        parts = ["m"]
        for index in self.indexes:
            if self.is_hardened(index):
                parts.append(f"{index - HARDENED_OFFSET}'")
            else:
                parts.append(str(index))
        return "/".join(parts)

    def __repr__(self) -> str:
        return f"KeyPath('{self}')"
