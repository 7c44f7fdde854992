"""
Deduplicated dictionary header of an archive ID file.

Observers, events, period ranges, phases and (for partial archives) voxel
positions are each stored once in the header. Records refer to them by their
position in the header, so an index is only meaningful together with the
dictionary of the file it came from.

Layout (big-endian)::

    count_observers  i2
    count_events     i2
    count_periods    i2
    count_phases     i2
    count_voxels     i2          partial archives only
    observers        count_observers * (S8 station, S8 network, f8 lat, f8 lon)
    events           count_events * S15
    period ranges    count_periods * (f8 min, f8 max)
    phases           count_phases * S16
    voxels           count_voxels * (f8 lat, f8 lon, f8 radius)

Strings are right-padded with spaces and trimmed when read.
"""

import dataclasses
import functools
from collections.abc import Iterable
from typing import TypeVar

import numpy as np

from wavearchive.constants import (
    BASIC_RECORD_WIDTH,
    BYTE_ORDER,
    COUNT_WIDTH,
    EVENT_WIDTH,
    MAX_DICTIONARY_ENTRIES,
    MAX_PERIOD_RANGES,
    NETWORK_WIDTH,
    OBSERVER_WIDTH,
    PARTIAL_RECORD_WIDTH,
    PERIOD_RANGE_WIDTH,
    PHASE_WIDTH,
    STATION_WIDTH,
    VOXEL_WIDTH,
)
from wavearchive.errors import FormatError, RecordKindError
from wavearchive.records import (
    BasicRecord,
    Event,
    Observer,
    PartialRecord,
    PeriodRange,
    Phase,
    VoxelPosition,
)

OBSERVER_DTYPE = np.dtype(
    [
        ("station", f"S{STATION_WIDTH}"),
        ("network", f"S{NETWORK_WIDTH}"),
        ("latitude", f"{BYTE_ORDER}f8"),
        ("longitude", f"{BYTE_ORDER}f8"),
    ]
)
EVENT_DTYPE = np.dtype([("event", f"S{EVENT_WIDTH}")])
PERIOD_RANGE_DTYPE = np.dtype(
    [("min_period", f"{BYTE_ORDER}f8"), ("max_period", f"{BYTE_ORDER}f8")]
)
PHASE_DTYPE = np.dtype([("phase", f"S{PHASE_WIDTH}")])
VOXEL_DTYPE = np.dtype(
    [
        ("latitude", f"{BYTE_ORDER}f8"),
        ("longitude", f"{BYTE_ORDER}f8"),
        ("radius", f"{BYTE_ORDER}f8"),
    ]
)
COUNT_DTYPE = np.dtype(f"{BYTE_ORDER}i2")

assert OBSERVER_DTYPE.itemsize == OBSERVER_WIDTH
assert PERIOD_RANGE_DTYPE.itemsize == PERIOD_RANGE_WIDTH
assert VOXEL_DTYPE.itemsize == VOXEL_WIDTH

T = TypeVar("T")


def _unique(values: Iterable[T]) -> list[T]:
    """Deduplicate `values`, keeping the order of first appearance."""
    return list(dict.fromkeys(values))


def encode_identifier(value: str, width: int, what: str) -> bytes:
    """Encode a string into a space-padded fixed-width ASCII field.

    Parameters
    ----------
    value : str
        The identifier.
    width : int
        The field width in bytes.
    what : str
        What the identifier names, for error messages.

    Returns
    -------
    bytes
        Exactly `width` bytes.

    Raises
    ------
    FormatError
        If `value` is not ASCII or does not fit in `width` bytes.
    """
    try:
        encoded = value.encode("ascii")
    except UnicodeEncodeError:
        raise FormatError(f"{what} {value!r} is not ASCII") from None
    if len(encoded) > width:
        raise FormatError(
            f"{what} {value!r} is longer than the {width} bytes available"
        )
    return encoded.ljust(width, b" ")


def decode_identifier(raw: bytes) -> str:
    """Strip the padding from a fixed-width field. Raises UnicodeDecodeError
    on non-ASCII bytes."""
    return raw.decode("ascii").strip("\x00 ")


@dataclasses.dataclass
class ArchiveDictionary:
    """The dictionary sections of one archive.

    Attributes
    ----------
    observers : list[Observer]
        Distinct observers, indexed by position.
    events : list[Event]
        Distinct events.
    period_ranges : list[PeriodRange]
        Distinct period ranges (exact match on both bounds).
    phases : list[Phase]
        Distinct phases.
    voxel_positions : list[VoxelPosition] | None
        Distinct voxel positions for partial archives, None for basic ones.
    """

    observers: list[Observer]
    events: list[Event]
    period_ranges: list[PeriodRange]
    phases: list[Phase]
    voxel_positions: list[VoxelPosition] | None = None

    @property
    def partial(self) -> bool:
        return self.voxel_positions is not None

    @property
    def record_width(self) -> int:
        return PARTIAL_RECORD_WIDTH if self.partial else BASIC_RECORD_WIDTH

    @classmethod
    def from_records(
        cls, records: Iterable[BasicRecord], partial: bool = False
    ) -> "ArchiveDictionary":
        """Collect the distinct dictionary entries of `records`.

        Entries are numbered in order of first appearance, with the phases of
        each record taken in name order.

        Parameters
        ----------
        records : Iterable[BasicRecord]
            The records that will be written with this dictionary.
        partial : bool
            If True, build a partial dictionary (with voxel positions).

        Returns
        -------
        ArchiveDictionary
            The dictionary.

        Raises
        ------
        FormatError
            If any section exceeds the number of entries an index can address.
        """
        records = list(records)
        dictionary = cls(
            observers=_unique(record.observer for record in records),
            events=_unique(record.event for record in records),
            period_ranges=_unique(record.period_range for record in records),
            phases=_unique(
                phase for record in records for phase in sorted(record.phases)
            ),
            voxel_positions=(
                _unique(record.voxel_position for record in records)
                if partial
                else None
            ),
        )
        dictionary.validate()
        return dictionary

    def validate(self):
        """Check every section fits within its index width.

        Raises
        ------
        FormatError
            If a section holds too many entries.
        """
        sections = {
            "observers": self.observers,
            "events": self.events,
            "period ranges": self.period_ranges,
            "phases": self.phases,
        }
        if self.partial:
            sections["voxel positions"] = self.voxel_positions
        for name, entries in sections.items():
            if len(entries) > MAX_DICTIONARY_ENTRIES:
                raise FormatError(
                    f"{len(entries)} distinct {name} exceed the limit of "
                    f"{MAX_DICTIONARY_ENTRIES}"
                )
        if len(self.period_ranges) > MAX_PERIOD_RANGES:
            raise FormatError(
                f"{len(self.period_ranges)} distinct period ranges exceed the "
                f"limit of {MAX_PERIOD_RANGES}"
            )

    def counts(self) -> list[int]:
        counts = [
            len(self.observers),
            len(self.events),
            len(self.period_ranges),
            len(self.phases),
        ]
        if self.partial:
            counts.append(len(self.voxel_positions))
        return counts

    @property
    def header_size(self) -> int:
        """int: Number of bytes the dictionary occupies at the top of the file."""
        return header_size(*self.counts())

    @functools.cached_property
    def observer_index(self) -> dict[Observer, int]:
        return {observer: i for i, observer in enumerate(self.observers)}

    @functools.cached_property
    def event_index(self) -> dict[Event, int]:
        return {event: i for i, event in enumerate(self.events)}

    @functools.cached_property
    def period_range_index(self) -> dict[PeriodRange, int]:
        return {period_range: i for i, period_range in enumerate(self.period_ranges)}

    @functools.cached_property
    def phase_index(self) -> dict[Phase, int]:
        return {phase: i for i, phase in enumerate(self.phases)}

    @functools.cached_property
    def voxel_index(self) -> dict[VoxelPosition, int]:
        return {voxel: i for i, voxel in enumerate(self.voxel_positions or [])}

    def encode(self) -> bytes:
        """Serialise the dictionary header.

        Returns
        -------
        bytes
            The header, `header_size` bytes long.

        Raises
        ------
        FormatError
            If a section is too large or an identifier does not fit its
            fixed width.
        """
        self.validate()
        observers = np.array(
            [
                (
                    encode_identifier(observer.station, STATION_WIDTH, "Station"),
                    encode_identifier(observer.network, NETWORK_WIDTH, "Network"),
                    observer.latitude,
                    observer.longitude,
                )
                for observer in self.observers
            ],
            dtype=OBSERVER_DTYPE,
        )
        events = np.array(
            [
                (encode_identifier(event.event_id, EVENT_WIDTH, "Event"),)
                for event in self.events
            ],
            dtype=EVENT_DTYPE,
        )
        period_ranges = np.array(
            [
                (period_range.min_period, period_range.max_period)
                for period_range in self.period_ranges
            ],
            dtype=PERIOD_RANGE_DTYPE,
        )
        phases = np.array(
            [
                (encode_identifier(phase.name, PHASE_WIDTH, "Phase"),)
                for phase in self.phases
            ],
            dtype=PHASE_DTYPE,
        )
        sections = [
            np.array(self.counts(), dtype=COUNT_DTYPE),
            observers,
            events,
            period_ranges,
            phases,
        ]
        if self.partial:
            sections.append(
                np.array(
                    [
                        (voxel.latitude, voxel.longitude, voxel.radius)
                        for voxel in self.voxel_positions
                    ],
                    dtype=VOXEL_DTYPE,
                )
            )
        return b"".join(section.tobytes() for section in sections)

    @classmethod
    def decode(
        cls, buffer: bytes, partial: bool = False, source: str = "<buffer>"
    ) -> tuple["ArchiveDictionary", int]:
        """Parse the dictionary header at the start of an ID file.

        Parameters
        ----------
        buffer : bytes
            The full contents of the ID file.
        partial : bool
            If True, the file is a partial archive with a voxel section.
        source : str
            Name of the file, for error messages.

        Returns
        -------
        tuple[ArchiveDictionary, int]
            The dictionary, and the header length in bytes (the offset of
            the first fixed record).

        Raises
        ------
        FormatError
            If the header is truncated or the bytes after it are not a whole
            number of fixed records.
        """
        n_counts = 5 if partial else 4
        if len(buffer) < n_counts * COUNT_WIDTH:
            raise FormatError(f"{source} is too short to hold a dictionary header")
        counts = [
            int(count)
            for count in np.frombuffer(buffer, dtype=COUNT_DTYPE, count=n_counts)
        ]
        if any(count < 0 for count in counts):
            raise FormatError(f"{source} declares negative dictionary sizes {counts}")
        size = header_size(*counts)
        if len(buffer) < size:
            raise FormatError(
                f"{source} is shorter ({len(buffer)} bytes) than its dictionary "
                f"header ({size} bytes)"
            )
        record_width = PARTIAL_RECORD_WIDTH if partial else BASIC_RECORD_WIDTH
        if (len(buffer) - size) % record_width != 0:
            raise FormatError(
                f"{source} is invalid: {len(buffer) - size} bytes after the header "
                f"is not a multiple of the {record_width} byte record width"
            )

        offset = n_counts * COUNT_WIDTH
        sections = []
        for dtype, count in zip(
            (OBSERVER_DTYPE, EVENT_DTYPE, PERIOD_RANGE_DTYPE, PHASE_DTYPE, VOXEL_DTYPE),
            counts,
        ):
            sections.append(
                np.frombuffer(buffer, dtype=dtype, count=count, offset=offset)
            )
            offset += dtype.itemsize * count
        observers, events, period_ranges, phases = sections[:4]

        try:
            dictionary = cls._from_sections(
                observers, events, period_ranges, phases, sections[4:]
            )
        except UnicodeDecodeError as e:
            raise FormatError(
                f"{source} is invalid: dictionary identifier {e.object!r} is not ASCII"
            ) from None
        return dictionary, size

    @classmethod
    def _from_sections(cls, observers, events, period_ranges, phases, voxels):
        return cls(
            observers=[
                Observer(
                    decode_identifier(entry["station"]),
                    decode_identifier(entry["network"]),
                    entry["latitude"],
                    entry["longitude"],
                )
                for entry in observers
            ],
            events=[Event(decode_identifier(entry["event"])) for entry in events],
            period_ranges=[
                PeriodRange(entry["min_period"], entry["max_period"])
                for entry in period_ranges
            ],
            phases=[Phase(decode_identifier(entry["phase"])) for entry in phases],
            voxel_positions=(
                [
                    VoxelPosition(
                        entry["latitude"], entry["longitude"], entry["radius"]
                    )
                    for entry in voxels[0]
                ]
                if voxels
                else None
            ),
        )

    def check_partial(self, record: BasicRecord):
        """Check `record` can be written with this dictionary's archive type.

        Raises
        ------
        RecordKindError
            If a partial record is given to a basic dictionary or vice versa.
        """
        if self.partial and not isinstance(record, PartialRecord):
            raise RecordKindError(
                f"Only partial records can be written to a partial archive, got {record}"
            )
        if not self.partial and isinstance(record, PartialRecord):
            raise RecordKindError(
                f"Partial records cannot be written to a basic archive, got {record}"
            )


def header_size(
    n_observers: int,
    n_events: int,
    n_period_ranges: int,
    n_phases: int,
    n_voxels: int | None = None,
) -> int:
    """Number of header bytes for the given dictionary sizes.

    Parameters
    ----------
    n_observers : int
        Observer count.
    n_events : int
        Event count.
    n_period_ranges : int
        Period range count.
    n_phases : int
        Phase count.
    n_voxels : int, optional
        Voxel count, for partial archives only.

    Returns
    -------
    int
        The header length in bytes.
    """
    size = (
        4 * COUNT_WIDTH
        + OBSERVER_DTYPE.itemsize * n_observers
        + EVENT_DTYPE.itemsize * n_events
        + PERIOD_RANGE_DTYPE.itemsize * n_period_ranges
        + PHASE_DTYPE.itemsize * n_phases
    )
    if n_voxels is not None:
        size += COUNT_WIDTH + VOXEL_DTYPE.itemsize * n_voxels
    return size
