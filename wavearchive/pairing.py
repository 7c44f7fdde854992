"""
Pair observed records with the synthetic records of the same window.

Pairs share observer, event, component, sampling rate, period range and
phase set (see `records.is_pair`). Observed records are indexed by that key,
so pairing is linear in the number of records.
"""

import dataclasses
import logging
import warnings
from collections import defaultdict, deque
from collections.abc import Iterable
from typing import Optional

from wavearchive import wavelogging
from wavearchive.constants import WaveformKind
from wavearchive.errors import IdentityConflictError, PairingWarning
from wavearchive.records import BasicRecord, pair_key


@dataclasses.dataclass
class PairedRecords:
    """Index-aligned observed and synthetic records.

    Attributes
    ----------
    observed : list[BasicRecord]
        Observed records, ``observed[i]`` pairs with ``synthetic[i]``.
    synthetic : list[BasicRecord]
        Synthetic records, in their input order.
    unmatched : list[BasicRecord]
        Records of either kind left without a partner.
    """

    observed: list[BasicRecord]
    synthetic: list[BasicRecord]
    unmatched: list[BasicRecord] = dataclasses.field(default_factory=list)

    def __len__(self):
        return len(self.synthetic)

    def __iter__(self):
        return iter(zip(self.observed, self.synthetic))


def _check_duplicates(
    records: list[BasicRecord], kind: WaveformKind, logger: logging.Logger
):
    seen = set()
    for record in records:
        if record in seen:
            message = f"Two {kind} records share the identity of {record}"
            logger.log(wavelogging.NOPRINTERROR, message)
            raise IdentityConflictError(message)
        seen.add(record)


def pair_up(
    records: Iterable[BasicRecord], logger: Optional[logging.Logger] = None
) -> PairedRecords:
    """Pair every synthetic record with an observed record of the same window.

    Each synthetic record, in input order, takes the first unused observed
    record with the same pairing key. The result is therefore the same for
    any ordering of the observed records.

    Parameters
    ----------
    records : Iterable[BasicRecord]
        Observed and synthetic records, e.g. as read from a basic archive.
    logger : Optional[logging.Logger]
        Logger for pairing statistics and unmatched records.

    Returns
    -------
    PairedRecords
        The aligned pairs, and the records left unmatched.

    Raises
    ------
    IdentityConflictError
        If two observed, or two synthetic, records are identical (ignoring
        samples).

    Warns
    -----
    PairingWarning
        If any record is left unmatched.
    """
    if logger is None:
        logger = wavelogging.get_basic_logger()
    observed = []
    synthetic = []
    for record in records:
        if record.kind == WaveformKind.OBSERVED:
            observed.append(record)
        elif record.kind == WaveformKind.SYNTHETIC:
            synthetic.append(record)
        else:
            raise ValueError(
                f"Only observed and synthetic records pair up, got {record}"
            )
    logger.info(
        f"Pairing {len(observed)} observed and {len(synthetic)} synthetic records"
    )
    _check_duplicates(observed, WaveformKind.OBSERVED, logger)
    _check_duplicates(synthetic, WaveformKind.SYNTHETIC, logger)

    candidates = defaultdict(deque)
    for record in observed:
        candidates[pair_key(record)].append(record)

    paired = PairedRecords(observed=[], synthetic=[])
    for record in synthetic:
        matches = candidates.get(pair_key(record))
        if not matches:
            logger.warning(f"No observed record pairs with synthetic {record}")
            paired.unmatched.append(record)
            continue
        paired.observed.append(matches.popleft())
        paired.synthetic.append(record)

    for record in observed:
        if record in candidates[pair_key(record)]:
            logger.debug(f"No synthetic record pairs with observed {record}")
            paired.unmatched.append(record)

    logger.info(
        f"{len(paired)} pairs created, {len(paired.unmatched)} records unmatched"
    )
    if paired.unmatched:
        warnings.warn(
            f"{len(paired.unmatched)} records have no partner and were left out",
            PairingWarning,
            stacklevel=2,
        )
    return paired
