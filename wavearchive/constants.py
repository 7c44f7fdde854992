"""
Binary layout constants and byte-coded enumerations for waveform archives.

Every width below is in bytes. All multi-byte numbers in an archive are
big-endian. The integer codes written for components, waveform kinds and
partial types live in explicit lookup tables rather than in enum declaration
order, so re-ordering an enum can never change the file format.
"""

from enum import StrEnum, auto

BASIC_ID_FILE_NAME = "basicID.dat"
BASIC_DATA_FILE_NAME = "basicData.dat"
PARTIAL_ID_FILE_NAME = "partialID.dat"
PARTIAL_DATA_FILE_NAME = "partialData.dat"

BYTE_ORDER = ">"

# Dictionary header
COUNT_WIDTH = 2
STATION_WIDTH = 8
NETWORK_WIDTH = 8
OBSERVER_WIDTH = STATION_WIDTH + NETWORK_WIDTH + 2 * 8
EVENT_WIDTH = 15
PERIOD_RANGE_WIDTH = 2 * 8
PHASE_WIDTH = 16
VOXEL_WIDTH = 3 * 8

# Fixed records
BASIC_RECORD_WIDTH = 48
PARTIAL_RECORD_WIDTH = 50
MAX_PHASES = 10
UNUSED_PHASE_INDEX = -1

# Dictionary indices are signed 16-bit integers, except the period range
# index which is a signed byte inside each record.
MAX_DICTIONARY_ENTRIES = 32767
MAX_PERIOD_RANGES = 127

SAMPLE_WIDTH = 8
SAMPLE_DTYPE = f"{BYTE_ORDER}f8"


class Component(StrEnum):
    """Seismogram component."""

    Z = "Z"
    """Vertical."""
    R = "R"
    """Radial."""
    T = "T"
    """Transverse."""

    @property
    def code(self) -> int:
        """int: The byte written to the archive for this component."""
        return _COMPONENT_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "Component":
        """Look up a component from its archive byte.

        Parameters
        ----------
        code : int
            The stored component byte.

        Returns
        -------
        Component
            The matching component.

        Raises
        ------
        ValueError
            If no component is stored as `code`.
        """
        try:
            return _COMPONENTS_BY_CODE[int(code)]
        except KeyError:
            raise ValueError(f"{code} is not a valid component code") from None


class WaveformKind(StrEnum):
    """What a waveform record holds."""

    OBSERVED = auto()
    SYNTHETIC = auto()
    PARTIAL = auto()

    @property
    def flag(self) -> int:
        """int: The leading byte of a basic record (partials have none)."""
        try:
            return _KIND_FLAGS[self]
        except KeyError:
            raise ValueError(f"{self} records carry no kind flag") from None

    @classmethod
    def from_flag(cls, flag: int) -> "WaveformKind":
        """Any positive flag is observed, anything else synthetic."""
        return cls.OBSERVED if flag > 0 else cls.SYNTHETIC


class VariableType(StrEnum):
    """Physical variable a partial derivative is taken with respect to."""

    RHO = "RHO"
    LAMBDA = "LAMBDA"
    MU = "MU"
    KAPPA = "KAPPA"
    LAMBDA2MU = "LAMBDA2MU"
    A = "A"
    C = "C"
    F = "F"
    L = "L"
    N = "N"
    VP = "VP"
    VS = "VS"
    R = "R"
    Q = "Q"
    TIME = "TIME"


class ParameterType(StrEnum):
    """How the model parameter of a partial derivative is discretised."""

    LAYER = "LAYER"
    VOXEL = "VOXEL"
    SOURCE = "SOURCE"
    RECEIVER = "RECEIVER"


class PartialType(StrEnum):
    """A (parameter type, variable type) combination, stored as one byte."""

    RHO1D = "RHO1D"
    LAMBDA1D = "LAMBDA1D"
    MU1D = "MU1D"
    KAPPA1D = "KAPPA1D"
    LAMBDA2MU1D = "LAMBDA2MU1D"
    A1D = "A1D"
    C1D = "C1D"
    F1D = "F1D"
    L1D = "L1D"
    N1D = "N1D"
    VP1D = "VP1D"
    VS1D = "VS1D"
    R1D = "R1D"
    Q1D = "Q1D"
    RHO3D = "RHO3D"
    LAMBDA3D = "LAMBDA3D"
    MU3D = "MU3D"
    KAPPA3D = "KAPPA3D"
    LAMBDA2MU3D = "LAMBDA2MU3D"
    A3D = "A3D"
    C3D = "C3D"
    F3D = "F3D"
    L3D = "L3D"
    N3D = "N3D"
    VP3D = "VP3D"
    VS3D = "VS3D"
    R3D = "R3D"
    Q3D = "Q3D"
    TIME_SOURCE = "TIME_SOURCE"
    TIME_RECEIVER = "TIME_RECEIVER"

    @property
    def code(self) -> int:
        """int: The byte written to the archive for this partial type."""
        return _PARTIAL_TYPE_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "PartialType":
        """Look up a partial type from its archive byte.

        Parameters
        ----------
        code : int
            The stored partial type byte.

        Returns
        -------
        PartialType
            The matching partial type.

        Raises
        ------
        ValueError
            If no partial type is stored as `code`.
        """
        try:
            return _PARTIAL_TYPES_BY_CODE[int(code)]
        except KeyError:
            raise ValueError(f"{code} is not a valid partial type code") from None

    @classmethod
    def of(
        cls, parameter_type: ParameterType, variable_type: VariableType
    ) -> "PartialType":
        """Combine a parameter type and a variable type.

        Parameters
        ----------
        parameter_type : ParameterType
            The model discretisation.
        variable_type : VariableType
            The physical variable.

        Returns
        -------
        PartialType
            The combined partial type.

        Raises
        ------
        ValueError
            If the combination has no partial type.
        """
        for partial_type, combination in _PARTIAL_TYPE_PARTS.items():
            if combination == (parameter_type, variable_type):
                return partial_type
        raise ValueError(
            f"No partial type for {parameter_type} and {variable_type}"
        )

    @property
    def parameter_type(self) -> ParameterType:
        return _PARTIAL_TYPE_PARTS[self][0]

    @property
    def variable_type(self) -> VariableType:
        return _PARTIAL_TYPE_PARTS[self][1]

    def is_1d(self) -> bool:
        return self.parameter_type == ParameterType.LAYER

    def is_3d(self) -> bool:
        return self.parameter_type == ParameterType.VOXEL

    def is_time_partial(self) -> bool:
        return self.variable_type == VariableType.TIME


_COMPONENT_CODES = {
    Component.Z: 1,
    Component.R: 2,
    Component.T: 3,
}
_COMPONENTS_BY_CODE = {code: component for component, code in _COMPONENT_CODES.items()}

_KIND_FLAGS = {
    WaveformKind.OBSERVED: 1,
    WaveformKind.SYNTHETIC: 0,
}

# Values must stay within a signed byte.
_PARTIAL_TYPE_CODES = {
    PartialType.RHO1D: 0,
    PartialType.LAMBDA1D: 1,
    PartialType.MU1D: 2,
    PartialType.KAPPA1D: 3,
    PartialType.LAMBDA2MU1D: 4,
    PartialType.A1D: 11,
    PartialType.C1D: 12,
    PartialType.F1D: 13,
    PartialType.L1D: 14,
    PartialType.N1D: 15,
    PartialType.VP1D: 21,
    PartialType.VS1D: 22,
    PartialType.R1D: 23,
    PartialType.Q1D: 24,
    PartialType.RHO3D: 30,
    PartialType.LAMBDA3D: 31,
    PartialType.MU3D: 32,
    PartialType.KAPPA3D: 33,
    PartialType.LAMBDA2MU3D: 34,
    PartialType.A3D: 41,
    PartialType.C3D: 42,
    PartialType.F3D: 43,
    PartialType.L3D: 44,
    PartialType.N3D: 45,
    PartialType.VP3D: 51,
    PartialType.VS3D: 52,
    PartialType.R3D: 53,
    PartialType.Q3D: 54,
    PartialType.TIME_SOURCE: 80,
    PartialType.TIME_RECEIVER: 90,
}
_PARTIAL_TYPES_BY_CODE = {
    code: partial_type for partial_type, code in _PARTIAL_TYPE_CODES.items()
}

_PARTIAL_TYPE_PARTS = {
    PartialType.RHO1D: (ParameterType.LAYER, VariableType.RHO),
    PartialType.LAMBDA1D: (ParameterType.LAYER, VariableType.LAMBDA),
    PartialType.MU1D: (ParameterType.LAYER, VariableType.MU),
    PartialType.KAPPA1D: (ParameterType.LAYER, VariableType.KAPPA),
    PartialType.LAMBDA2MU1D: (ParameterType.LAYER, VariableType.LAMBDA2MU),
    PartialType.A1D: (ParameterType.LAYER, VariableType.A),
    PartialType.C1D: (ParameterType.LAYER, VariableType.C),
    PartialType.F1D: (ParameterType.LAYER, VariableType.F),
    PartialType.L1D: (ParameterType.LAYER, VariableType.L),
    PartialType.N1D: (ParameterType.LAYER, VariableType.N),
    PartialType.VP1D: (ParameterType.LAYER, VariableType.VP),
    PartialType.VS1D: (ParameterType.LAYER, VariableType.VS),
    PartialType.R1D: (ParameterType.LAYER, VariableType.R),
    PartialType.Q1D: (ParameterType.LAYER, VariableType.Q),
    PartialType.RHO3D: (ParameterType.VOXEL, VariableType.RHO),
    PartialType.LAMBDA3D: (ParameterType.VOXEL, VariableType.LAMBDA),
    PartialType.MU3D: (ParameterType.VOXEL, VariableType.MU),
    PartialType.KAPPA3D: (ParameterType.VOXEL, VariableType.KAPPA),
    PartialType.LAMBDA2MU3D: (ParameterType.VOXEL, VariableType.LAMBDA2MU),
    PartialType.A3D: (ParameterType.VOXEL, VariableType.A),
    PartialType.C3D: (ParameterType.VOXEL, VariableType.C),
    PartialType.F3D: (ParameterType.VOXEL, VariableType.F),
    PartialType.L3D: (ParameterType.VOXEL, VariableType.L),
    PartialType.N3D: (ParameterType.VOXEL, VariableType.N),
    PartialType.VP3D: (ParameterType.VOXEL, VariableType.VP),
    PartialType.VS3D: (ParameterType.VOXEL, VariableType.VS),
    PartialType.R3D: (ParameterType.VOXEL, VariableType.R),
    PartialType.Q3D: (ParameterType.VOXEL, VariableType.Q),
    PartialType.TIME_SOURCE: (ParameterType.SOURCE, VariableType.TIME),
    PartialType.TIME_RECEIVER: (ParameterType.RECEIVER, VariableType.TIME),
}
