"""
Text and tabular views of archive records for inspection.

Functions
---------
records_to_dataframe
  One row of identifying fields per record.
waveform_text_file_name
  Conventional name of the text file of one waveform.
write_pair_text
  Observed and synthetic samples side by side in a text file.
export_pairs
  Text files of all pairs, grouped in one directory per event.
write_record_list
  One line of description per record.
summarise
  Counts of the distinct entries referenced by a set of records.
"""

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from wavearchive import wavelogging
from wavearchive.records import BasicRecord, PartialRecord, phases_as_string


def records_to_dataframe(records: Iterable[BasicRecord]) -> pd.DataFrame:
    """Tabulate the identifying fields of records.

    Parameters
    ----------
    records : Iterable[BasicRecord]
        Basic or partial records.

    Returns
    -------
    pd.DataFrame
        One row per record, in the given order. Partial records add the
        voxel position and partial type columns.
    """
    rows = []
    for record in records:
        row = {
            "station": record.observer.station,
            "network": record.observer.network,
            "latitude": record.observer.latitude,
            "longitude": record.observer.longitude,
            "event": record.event.event_id,
            "component": str(record.component),
            "kind": str(record.kind),
            "start_time": record.start_time,
            "npts": record.npts,
            "sampling_hz": record.sampling_hz,
            "min_period": record.min_period,
            "max_period": record.max_period,
            "phases": phases_as_string(record.phases),
            "convolved": record.convolved,
            "start_byte": record.start_byte,
        }
        if isinstance(record, PartialRecord):
            row["voxel_latitude"] = record.voxel_position.latitude
            row["voxel_longitude"] = record.voxel_position.longitude
            row["voxel_radius"] = record.voxel_position.radius
            row["partial_type"] = str(record.partial_type)
        rows.append(row)
    return pd.DataFrame(rows)


def waveform_text_file_name(record: BasicRecord) -> str:
    return f"{record.observer}.{record.event}.{record.component}.txt"


def write_pair_text(
    observed: BasicRecord, synthetic: BasicRecord, output_path: Path | str
):
    """
    Write a pair of waveforms as four columns: observed time, observed
    sample, synthetic time, synthetic sample.

    Parameters
    ----------
    observed : BasicRecord
        The observed record, holding data.
    synthetic : BasicRecord
        The synthetic record, holding data.
    output_path : Path | str
        The text file to write.

    Raises
    ------
    ValueError
        If either record has no data or the sample counts differ.
    """
    if observed.npts != synthetic.npts:
        raise ValueError(
            f"Cannot tabulate {observed.npts} observed against "
            f"{synthetic.npts} synthetic samples"
        )
    obs_times, obs_samples = observed.to_trace()
    syn_times, syn_samples = synthetic.to_trace()
    np.savetxt(
        output_path,
        np.column_stack((obs_times, obs_samples, syn_times, syn_samples)),
        fmt="%.6f %.8e %.6f %.8e",
    )


def export_pairs(
    observed: Sequence[BasicRecord],
    synthetic: Sequence[BasicRecord],
    output_dir: Path | str,
    logger: Optional[logging.Logger] = None,
) -> list[Path]:
    """Write the text file of every pair, in one directory per event.

    Parameters
    ----------
    observed : Sequence[BasicRecord]
        Observed records with data, aligned with `synthetic`.
    synthetic : Sequence[BasicRecord]
        Synthetic records with data.
    output_dir : Path | str
        Root directory, created if needed.
    logger : Optional[logging.Logger]
        Logger for progress messages.

    Returns
    -------
    list[Path]
        The written files, in pair order.
    """
    if logger is None:
        logger = wavelogging.get_basic_logger()
    if len(observed) != len(synthetic):
        raise ValueError(
            f"{len(observed)} observed records do not align with "
            f"{len(synthetic)} synthetic records"
        )
    output_dir = Path(output_dir)
    written = []
    for obs, syn in zip(observed, synthetic):
        event_dir = output_dir / str(syn.event)
        event_dir.mkdir(parents=True, exist_ok=True)
        output_path = event_dir / waveform_text_file_name(syn)
        write_pair_text(obs, syn, output_path)
        written.append(output_path)
    logger.info(f"Exported {len(written)} waveform pairs to {output_dir}")
    return written


def write_record_list(records: Iterable[BasicRecord], output_path: Path | str):
    with open(output_path, "w") as output_file:
        for record in records:
            output_file.write(f"{record}\n")


def summarise(records: Iterable[BasicRecord]) -> dict[str, int]:
    """Count the distinct entries referenced by records.

    Parameters
    ----------
    records : Iterable[BasicRecord]
        Basic or partial records.

    Returns
    -------
    dict[str, int]
        Number of records and of distinct observers and events, plus
        partial types and voxels for partial records.
    """
    records = list(records)
    summary = {
        "records": len(records),
        "observers": len({record.observer for record in records}),
        "events": len({record.event for record in records}),
    }
    partials = [record for record in records if isinstance(record, PartialRecord)]
    if partials:
        summary["partial_types"] = len({record.partial_type for record in partials})
        summary["voxels"] = len({record.voxel_position for record in partials})
    return summary
