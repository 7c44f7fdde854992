"""
Immutable value types stored in waveform archives.

Classes
-------
- Observer: Station identity and horizontal position.
- Event: Catalog identifier of a seismic event.
- PeriodRange: Pass band of the filter applied to a waveform.
- Phase: Named seismic phase.
- VoxelPosition: Position of a model perturbation (partials only).
- BasicRecord: One observed or synthetic waveform.
- PartialRecord: One partial-derivative waveform.

Notes
-----
Records compare and hash on their identifying fields only. The sample array
and the byte offset never take part in equality, so a record read without
data equals the same record read with data.

Start time and sampling rate are stored in the archive as 32-bit floats.
Records round both to float32 precision on construction, which makes a
record equal to itself after a write and read cycle.
"""

import dataclasses
from collections.abc import Iterable

import numpy as np

from wavearchive.constants import Component, PartialType, WaveformKind


def _float32(value: float) -> float:
    return float(np.float32(value))


def _set(instance: object, name: str, value: object) -> None:
    # frozen dataclasses only allow normalisation through object.__setattr__
    object.__setattr__(instance, name, value)


@dataclasses.dataclass(frozen=True)
class Observer:
    """A seismic station.

    Attributes
    ----------
    station : str
        Station code (at most 8 characters when written).
    network : str
        Network code (at most 8 characters when written).
    latitude : float
        Station latitude in degrees.
    longitude : float
        Station longitude in degrees.
    """

    station: str
    network: str
    latitude: float
    longitude: float

    def __post_init__(self):  # noqa: D105
        _set(self, "station", str(self.station).strip())
        _set(self, "network", str(self.network).strip())
        _set(self, "latitude", float(self.latitude))
        _set(self, "longitude", float(self.longitude))

    def __str__(self) -> str:
        return f"{self.station}_{self.network}"


@dataclasses.dataclass(frozen=True)
class Event:
    """A catalog event identifier such as a Global CMT ID."""

    event_id: str

    def __post_init__(self):  # noqa: D105
        _set(self, "event_id", str(self.event_id).strip())

    def __str__(self) -> str:
        return self.event_id


@dataclasses.dataclass(frozen=True)
class PeriodRange:
    """Minimum and maximum period [s] of an applied band-pass filter.

    An unfiltered waveform uses ``PeriodRange(0, inf)``.
    """

    min_period: float
    max_period: float

    def __post_init__(self):  # noqa: D105
        _set(self, "min_period", float(self.min_period))
        _set(self, "max_period", float(self.max_period))


@dataclasses.dataclass(frozen=True, order=True)
class Phase:
    """A seismic phase name, e.g. ``ScS``."""

    name: str

    def __post_init__(self):  # noqa: D105
        _set(self, "name", str(self.name).strip())

    def __str__(self) -> str:
        return self.name


@dataclasses.dataclass(frozen=True)
class VoxelPosition:
    """Latitude [deg], longitude [deg] and radius [km] of a voxel."""

    latitude: float
    longitude: float
    radius: float

    def __post_init__(self):  # noqa: D105
        _set(self, "latitude", float(self.latitude))
        _set(self, "longitude", float(self.longitude))
        _set(self, "radius", float(self.radius))

    def __str__(self) -> str:
        return f"{self.latitude} {self.longitude} {self.radius}"


def phases_as_string(phases: Iterable[Phase]) -> str:
    """Phase names joined by commas, or "null" when there are none."""
    names = sorted(phase.name for phase in phases)
    return ",".join(names) if names else "null"


@dataclasses.dataclass(frozen=True, kw_only=True)
class BasicRecord:
    """An observed or synthetic waveform and its identification.

    Attributes
    ----------
    kind : WaveformKind
        Observed or synthetic.
    observer : Observer
        The recording station.
    event : Event
        The source event.
    component : Component
        Seismogram component.
    period_range : PeriodRange
        Applied filter pass band.
    phases : frozenset[Phase]
        Phases contained in the time window (at most 10 when written).
    start_time : float
        Start of the time window [s], float32 precision.
    npts : int
        Number of samples.
    sampling_hz : float
        Sampling rate [Hz], float32 precision.
    convolved : bool
        Whether a source time function has been convolved.
    start_byte : int
        Offset of the samples in the data file. Informational only, excluded
        from equality.
    data : np.ndarray | None
        Read-only float64 samples, or None when not loaded. Excluded from
        equality.
    """

    kind: WaveformKind
    observer: Observer
    event: Event
    component: Component
    period_range: PeriodRange
    phases: frozenset[Phase] = frozenset()
    start_time: float
    npts: int
    sampling_hz: float
    convolved: bool = False
    start_byte: int = dataclasses.field(default=0, compare=False)
    data: np.ndarray | None = dataclasses.field(
        default=None, compare=False, repr=False
    )

    def __post_init__(self):  # noqa: D105
        self._check_kind()
        _set(self, "kind", WaveformKind(self.kind))
        _set(self, "component", Component(self.component))
        _set(self, "phases", frozenset(self.phases))
        _set(self, "start_time", _float32(self.start_time))
        _set(self, "sampling_hz", _float32(self.sampling_hz))
        _set(self, "npts", int(self.npts))
        _set(self, "convolved", bool(self.convolved))
        _set(self, "start_byte", int(self.start_byte))
        if self.npts < 0:
            raise ValueError(f"Sample count must not be negative, got {self.npts}")
        if self.data is not None:
            data = np.array(self.data, dtype=np.float64)
            if data.ndim != 1 or data.shape[0] != self.npts:
                raise ValueError(
                    f"Waveform of shape {data.shape} does not match npts={self.npts}"
                )
            data.setflags(write=False)
            _set(self, "data", data)

    def _check_kind(self):
        if self.kind not in (WaveformKind.OBSERVED, WaveformKind.SYNTHETIC):
            raise ValueError(f"A basic record cannot hold a {self.kind} waveform")

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def min_period(self) -> float:
        return self.period_range.min_period

    @property
    def max_period(self) -> float:
        return self.period_range.max_period

    def with_data(self, data: np.ndarray) -> "BasicRecord":
        """Return a copy of this record holding `data`.

        Parameters
        ----------
        data : np.ndarray
            The samples, of length `npts`.

        Returns
        -------
        BasicRecord
            A new record; this one is left untouched.
        """
        return dataclasses.replace(self, data=data)

    def without_data(self) -> "BasicRecord":
        return dataclasses.replace(self, data=None)

    def to_trace(self) -> tuple[np.ndarray, np.ndarray]:
        """Get the time axis and samples of this waveform.

        Returns
        -------
        tuple[np.ndarray, np.ndarray]
            Times [s] (``start_time + i / sampling_hz``) and the samples.

        Raises
        ------
        ValueError
            If the record holds no data.
        """
        if self.data is None:
            raise ValueError(f"No waveform data loaded for {self}")
        times = self.start_time + np.arange(self.npts) / self.sampling_hz
        return times, self.data

    def __str__(self) -> str:
        return (
            f"{self.observer.station:<8} {self.observer.network:<8} "
            f"{self.observer.latitude} {self.observer.longitude} "
            f"{self.event.event_id:<15} {self.component} {self.kind} "
            f"{self.start_time} {self.npts} {self.sampling_hz} "
            f"{self.min_period} {self.max_period} {phases_as_string(self.phases)} "
            f"{self.start_byte} {self.convolved}"
        )


@dataclasses.dataclass(frozen=True, kw_only=True)
class PartialRecord(BasicRecord):
    """A partial-derivative waveform for one voxel and one partial type."""

    kind: WaveformKind = WaveformKind.PARTIAL
    voxel_position: VoxelPosition
    partial_type: PartialType

    def __post_init__(self):  # noqa: D105
        super().__post_init__()
        _set(self, "partial_type", PartialType(self.partial_type))

    def _check_kind(self):
        if self.kind != WaveformKind.PARTIAL:
            raise ValueError(f"A partial record cannot hold a {self.kind} waveform")

    def __str__(self) -> str:
        return (
            f"{self.observer.station} {self.observer.network} {self.event} "
            f"{self.component} {self.sampling_hz} {self.start_time} {self.npts} "
            f"{self.min_period} {self.max_period} {phases_as_string(self.phases)} "
            f"{self.start_byte} {self.convolved} {self.voxel_position} "
            f"{self.partial_type}"
        )


def pair_key(record: BasicRecord) -> tuple:
    """The fields an observed and a synthetic record must share to be a pair."""
    return (
        record.observer,
        record.event,
        record.component,
        record.sampling_hz,
        record.period_range,
        record.phases,
    )


def is_pair(record0: BasicRecord, record1: BasicRecord) -> bool:
    """Decide whether two records describe the same waveform window.

    The records must share observer, event, component, sampling rate, both
    period bounds and the set of phases. Whether each is observed or
    synthetic is ignored.

    Parameters
    ----------
    record0 : BasicRecord
        The first record.
    record1 : BasicRecord
        The second record.

    Returns
    -------
    bool
        True if the records are a pair.
    """
    return pair_key(record0) == pair_key(record1)
