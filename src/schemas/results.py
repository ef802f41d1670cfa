"""Per-entry outcomes accumulated across the attempts of a task."""

from dataclasses import asdict, dataclass, field
from typing import Any, Iterator, TypeAlias

from src.schemas.types import ResultStatusEnum

ProviderResponse: TypeAlias = dict[str, Any]


@dataclass(slots=True, kw_only=True, frozen=True)
class EntryDescriptor:
    name: str = field(metadata={"description": "Member name from the tar header."})
    size: int = field(metadata={"description": "Declared member size in bytes."})

    def model_dump(self) -> dict[str, Any]:
        """Convert to a dictionary.

        Returns
        -------
        dict[str, Any]
            Dictionary representation.
        """
        return asdict(self)


@dataclass(slots=True, kw_only=True, frozen=True)
class ResultRecord:
    """Tagged outcome of one entry: a `result` on success, an `error` otherwise."""

    params: EntryDescriptor
    status: ResultStatusEnum
    result: ProviderResponse | None = None
    error: BaseException | None = None

    @classmethod
    def success(cls, params: EntryDescriptor, result: ProviderResponse | None) -> "ResultRecord":
        return cls(params=params, status=ResultStatusEnum.SUCCESS, result=result)

    @classmethod
    def failure(cls, params: EntryDescriptor, error: BaseException) -> "ResultRecord":
        return cls(params=params, status=ResultStatusEnum.ERROR, error=error)

    @property
    def ok(self) -> bool:
        return self.status == ResultStatusEnum.SUCCESS

    def model_dump(self) -> dict[str, Any]:
        """Render as ``{params, result}`` or ``{params, error}``.

        The error is rendered as its type name and message so the record can be
        serialized to JSON.
        """
        data: dict[str, Any] = {"params": self.params.model_dump()}
        if self.ok:
            data["result"] = self.result
        else:
            data["error"] = {"type": type(self.error).__name__, "message": str(self.error)}
        return data


class ResultsSequence:
    """Ordered mapping from an entry's ordinal position in the archive to its outcome.

    Index ``i`` always refers to the ``i``-th member of the archive stream, across all
    attempts. An index without a record means the entry has not been reached (or its
    failure was dropped before a retry).
    """

    def __init__(self) -> None:
        self._records: dict[int, ResultRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, index: object) -> bool:
        return index in self._records

    def __iter__(self) -> Iterator[ResultRecord]:
        for index in sorted(self._records):
            yield self._records[index]

    def __getitem__(self, index: int) -> ResultRecord:
        return self._records[index]

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(records={len(self)}, "
            f"successes={len(self.successes())}, failures={len(self.failures())})"
        )

    def get(self, index: int) -> ResultRecord | None:
        return self._records.get(index)

    def has_record(self, index: int) -> bool:
        return index in self._records

    def items(self) -> list[tuple[int, ResultRecord]]:
        return sorted(self._records.items())

    def next_index(self) -> int:
        """Lowest index without a record."""
        index = 0
        while index in self._records:
            index += 1
        return index

    def record_success(
        self, index: int, params: EntryDescriptor, result: ProviderResponse | None
    ) -> ResultRecord:
        record = ResultRecord.success(params, result)
        self._records[index] = record
        return record

    def record_failure(self, index: int, params: EntryDescriptor, error: BaseException) -> ResultRecord:
        existing = self._records.get(index)
        if existing is not None and existing.ok:
            raise ValueError(f"Entry {index} ({existing.params.name!r}) already succeeded")
        record = ResultRecord.failure(params, error)
        self._records[index] = record
        return record

    def drop_failures(self) -> int:
        """Remove every error record so those entries are processed again.

        Returns
        -------
        int
            Number of records dropped.
        """
        failed = [index for index, record in self._records.items() if not record.ok]
        for index in failed:
            del self._records[index]
        return len(failed)

    def successes(self) -> list[ResultRecord]:
        return [record for record in self if record.ok]

    def failures(self) -> list[ResultRecord]:
        return [record for record in self if not record.ok]

    @property
    def has_failures(self) -> bool:
        return any(not record.ok for record in self._records.values())

    def to_list(self) -> list[dict[str, Any]]:
        """Serialize all records in index order."""
        return [record.model_dump() for record in self]
