import numpy as np
import pytest

from wavearchive.constants import Component, PartialType, WaveformKind
from wavearchive.records import (
    BasicRecord,
    Event,
    Observer,
    PartialRecord,
    PeriodRange,
    Phase,
    VoxelPosition,
)


@pytest.fixture
def observer():
    return Observer("MAJO", "IU", 36.5457, 138.2041)


@pytest.fixture
def event():
    return Event("201104110216A")


@pytest.fixture
def period_range():
    return PeriodRange(12.5, 200.0)


@pytest.fixture
def make_basic(observer, event, period_range):
    """Factory of basic records holding random samples."""

    def _make_basic(kind=WaveformKind.SYNTHETIC, npts=100, seed=0, **fields):
        rng = np.random.default_rng(seed)
        data = fields.pop("data") if "data" in fields else rng.standard_normal(npts)
        record_fields = dict(
            kind=kind,
            observer=observer,
            event=event,
            component=Component.T,
            period_range=period_range,
            phases=frozenset({Phase("ScS")}),
            start_time=512.3,
            npts=npts,
            sampling_hz=20.0,
        )
        record_fields.update(fields)
        return BasicRecord(data=data, **record_fields)

    return _make_basic


@pytest.fixture
def make_partial(observer, event, period_range):
    """Factory of partial records holding random samples."""

    def _make_partial(
        voxel=(35.0, 140.0, 3505.0),
        partial_type=PartialType.MU3D,
        npts=50,
        seed=1,
        **fields,
    ):
        rng = np.random.default_rng(seed)
        data = fields.pop("data") if "data" in fields else rng.standard_normal(npts)
        record_fields = dict(
            observer=observer,
            event=event,
            component=Component.Z,
            period_range=period_range,
            phases=frozenset({Phase("S"), Phase("ScS")}),
            start_time=480.0,
            npts=npts,
            sampling_hz=20.0,
            voxel_position=VoxelPosition(*voxel),
            partial_type=partial_type,
        )
        record_fields.update(fields)
        return PartialRecord(data=data, **record_fields)

    return _make_partial


@pytest.fixture
def three_records(make_basic):
    """Two synthetics and one observed record sharing every dictionary entry."""
    return [
        make_basic(WaveformKind.SYNTHETIC, npts=100, seed=0),
        make_basic(WaveformKind.OBSERVED, npts=100, seed=1),
        make_basic(WaveformKind.SYNTHETIC, npts=80, seed=2, start_time=700.0),
    ]
