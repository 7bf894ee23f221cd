from typing import Optional, Union, overload
from collections.abc import Iterable, Iterator, Sequence
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .exceptions import DuplicateRecord, RecordNotFound


class CredentialRecord(BaseModel):
    """CredentialRecord.
    A named (service, username, secret) entry of the vault.

    Records are immutable; change one by replacing it as a whole.
    The secret is left out of ``repr()``.
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    name: str = Field(min_length=1, max_length=255)
    username: str
    secret: str = Field(repr=False)

    @field_validator("name", "username", "secret")
    @classmethod
    def validate_utf8(cls, v: str) -> str:
        """Fields are stored as UTF-8; lone surrogates cannot be encoded."""
        try:
            v.encode("utf-8")
        except UnicodeEncodeError:
            # the error text would quote part of the value
            raise ValueError("must be valid UTF-8 text") from None
        return v


class VaultContents(Sequence[CredentialRecord]):
    """Ordered collection of credential records.

    Insertion order is the only order. Record names are unique:
    ``add`` refuses a name that is already present, ``find`` looks a
    record up by name and ``replace`` swaps a record for a new one
    with the same name.
    """

    def __init__(
        self,
        records: Optional[Iterable[CredentialRecord]] = None
    ) -> None:
        self._records: list[CredentialRecord] = []
        self._changed: bool = False
        for record in records or ():
            self._append(record)
        # loading is not a change.
        self._changed = False

    def __repr__(self) -> str:
        return (
            f'<VaultContents [changed:{self._changed}] '
            f'names={[r.name for r in self._records]!r}>'
        )

    def _index(self, name: str) -> int:
        for idx, record in enumerate(self._records):
            if record.name == name:
                return idx
        return -1

    def _append(self, record: CredentialRecord) -> None:
        if not isinstance(record, CredentialRecord):
            raise TypeError(
                f"Expected CredentialRecord, got {type(record).__name__}"
            )
        if self._index(record.name) >= 0:
            raise DuplicateRecord(
                f"A record named {record.name!r} already exists"
            )
        self._records.append(record)
        self._changed = True

    # --- Mutation ---

    def add(self, record: CredentialRecord) -> None:
        """Append a record at the end of the collection.

        Raises:
            DuplicateRecord: a record with the same name exists.
        """
        self._append(record)

    def replace(self, record: CredentialRecord) -> CredentialRecord:
        """Replace the record sharing ``record.name``, keeping its position.

        Returns:
            The record that was replaced.

        Raises:
            RecordNotFound: no record has that name.
        """
        idx = self._index(record.name)
        if idx < 0:
            raise RecordNotFound(f"No record named {record.name!r}")
        old = self._records[idx]
        self._records[idx] = record
        self._changed = True
        return old

    # --- Lookup ---

    def find(self, name: str) -> CredentialRecord:
        """Return the record called ``name``.

        Raises:
            RecordNotFound: no record has that name.
        """
        idx = self._index(name)
        if idx < 0:
            raise RecordNotFound(f"No record named {name!r}")
        return self._records[idx]

    def names(self) -> list[str]:
        return [record.name for record in self._records]

    def records(self) -> tuple[CredentialRecord, ...]:
        """Read-only view of the records, in insertion order."""
        return tuple(self._records)

    # --- Properties ---

    @property
    def empty(self) -> bool:
        return not self._records

    @property
    def is_changed(self) -> bool:
        return self._changed

    @is_changed.setter
    def is_changed(self, value: bool) -> None:
        self._changed = value

    # --- Magic Methods ---

    @overload
    def __getitem__(self, index: int) -> CredentialRecord: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[CredentialRecord]: ...

    def __getitem__(
        self, index: Union[int, slice]
    ) -> Union[CredentialRecord, Sequence[CredentialRecord]]:
        if isinstance(index, slice):
            return tuple(self._records[index])
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[CredentialRecord]:
        return iter(tuple(self._records))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return self._index(item) >= 0
        return item in self._records

    def __eq__(self, other: object) -> bool:
        if isinstance(other, VaultContents):
            return self._records == other._records
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]
