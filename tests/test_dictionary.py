import numpy as np
import pytest

from wavearchive.constants import MAX_DICTIONARY_ENTRIES, MAX_PERIOD_RANGES
from wavearchive.dictionary import (
    ArchiveDictionary,
    decode_identifier,
    encode_identifier,
    header_size,
)
from wavearchive.errors import FormatError, RecordKindError
from wavearchive.records import Event, Observer, PeriodRange, Phase, VoxelPosition


def test_header_size():
    assert header_size(1, 1, 1, 1) == 8 + 32 + 15 + 16 + 16
    assert header_size(1, 1, 1, 1, 1) == 8 + 32 + 15 + 16 + 16 + 2 + 24
    assert header_size(0, 0, 0, 0) == 8


def test_entries_are_deduplicated_in_order_of_appearance(make_basic, observer):
    other = Observer("ERM", "II", 42.015, 143.157)
    records = [
        make_basic(observer=other),
        make_basic(phases=frozenset({Phase("S"), Phase("ScS")})),
        make_basic(start_time=10.0),
    ]
    dictionary = ArchiveDictionary.from_records(records)
    assert dictionary.observers == [other, observer]
    assert len(dictionary.events) == 1
    assert len(dictionary.period_ranges) == 1
    assert dictionary.phases == [Phase("ScS"), Phase("S")]
    assert not dictionary.partial


def test_period_ranges_deduplicate_on_both_bounds(make_basic):
    records = [
        make_basic(period_range=PeriodRange(12.5, 200.0)),
        make_basic(period_range=PeriodRange(12.5, 200.0), start_time=1.0),
        make_basic(period_range=PeriodRange(12.5, 100.0)),
    ]
    dictionary = ArchiveDictionary.from_records(records)
    assert dictionary.period_ranges == [
        PeriodRange(12.5, 200.0),
        PeriodRange(12.5, 100.0),
    ]


def test_round_trip(make_basic, make_partial):
    basic = ArchiveDictionary.from_records([make_basic()])
    encoded = basic.encode()
    decoded, size = ArchiveDictionary.decode(encoded)
    assert size == len(encoded) == basic.header_size
    assert decoded == basic

    partial = ArchiveDictionary.from_records(
        [make_partial(), make_partial(voxel=(0.0, 0.0, 6000.0))], partial=True
    )
    decoded, size = ArchiveDictionary.decode(partial.encode(), partial=True)
    assert decoded == partial
    assert decoded.voxel_positions == [
        VoxelPosition(35.0, 140.0, 3505.0),
        VoxelPosition(0.0, 0.0, 6000.0),
    ]


def test_counts_are_big_endian_int16(make_basic):
    encoded = ArchiveDictionary.from_records([make_basic()]).encode()
    assert np.frombuffer(encoded[:8], dtype=">i2").tolist() == [1, 1, 1, 1]
    assert encoded[8:24] == b"MAJO    IU      "


def test_identifier_padding():
    assert encode_identifier("IU", 8, "Network") == b"IU      "
    assert decode_identifier(b"IU      ") == "IU"
    assert decode_identifier(b"IU\x00\x00\x00\x00\x00\x00") == "IU"


@pytest.mark.parametrize("value", ["ABCDEFGHI", "MAJÖ"])
def test_invalid_identifier(value):
    with pytest.raises(FormatError):
        encode_identifier(value, 8, "Station")


def test_long_event_id_is_rejected(make_basic):
    dictionary = ArchiveDictionary.from_records(
        [make_basic(event=Event("2011041102160000A"))]
    )
    with pytest.raises(FormatError):
        dictionary.encode()


@pytest.mark.parametrize(
    "section", ["observers", "events", "phases", "voxel_positions"]
)
def test_too_many_entries(section):
    entries = {
        "observers": [Observer("MAJO", "IU", 36.5, 138.2)],
        "events": [Event("200503211223A")],
        "period_ranges": [PeriodRange(10, 100)],
        "phases": [],
        "voxel_positions": [VoxelPosition(0.0, 0.0, 3480.0)],
    }
    n = MAX_DICTIONARY_ENTRIES + 1
    entries[section] = {
        "observers": [Observer(f"S{i}", "XX", 0.0, 0.0) for i in range(n)],
        "events": [Event(f"E{i}") for i in range(n)],
        "phases": [Phase(f"P{i}") for i in range(n)],
        "voxel_positions": [VoxelPosition(0.0, 0.0, float(i)) for i in range(n)],
    }[section]
    dictionary = ArchiveDictionary(**entries)
    with pytest.raises(FormatError, match=section.replace("_", " ")):
        dictionary.validate()
    with pytest.raises(FormatError):
        dictionary.encode()


def test_too_many_period_ranges(make_basic):
    records = [
        make_basic(period_range=PeriodRange(1.0, 10.0 + i), data=None)
        for i in range(MAX_PERIOD_RANGES + 1)
    ]
    with pytest.raises(FormatError):
        ArchiveDictionary.from_records(records)


@pytest.mark.parametrize("buffer", [b"", b"\x00\x01\x00"])
def test_truncated_counts(buffer):
    with pytest.raises(FormatError):
        ArchiveDictionary.decode(buffer)


@pytest.mark.parametrize("offset", [8, 20, 8 + 32])
def test_non_ascii_identifier_is_rejected(make_basic, offset):
    encoded = bytearray(ArchiveDictionary.from_records([make_basic()]).encode())
    encoded[offset] = 0xFF
    with pytest.raises(FormatError, match="basicID.dat is invalid"):
        ArchiveDictionary.decode(bytes(encoded), source="basicID.dat")


def test_header_longer_than_file(make_basic):
    encoded = ArchiveDictionary.from_records([make_basic()]).encode()
    with pytest.raises(FormatError):
        ArchiveDictionary.decode(encoded[:-1])


def test_negative_count():
    with pytest.raises(FormatError):
        ArchiveDictionary.decode(np.array([1, -1, 0, 0], dtype=">i2").tobytes())


def test_trailing_bytes_must_be_whole_records(make_basic):
    encoded = ArchiveDictionary.from_records([make_basic()]).encode()
    ArchiveDictionary.decode(encoded + bytes(48))
    with pytest.raises(FormatError):
        ArchiveDictionary.decode(encoded + bytes(47))


def test_check_partial(make_basic, make_partial):
    basic = ArchiveDictionary.from_records([make_basic()])
    partial = ArchiveDictionary.from_records([make_partial()], partial=True)
    basic.check_partial(make_basic())
    partial.check_partial(make_partial())
    with pytest.raises(RecordKindError):
        basic.check_partial(make_partial())
    with pytest.raises(RecordKindError):
        partial.check_partial(make_basic())
