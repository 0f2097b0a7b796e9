"""Solute cluster envelopes and matrix compositions for atom probe tomography"""
from .analysis import (
    AnalysisOutcome,
    AnalysisResult,
    EnvelopeAnalysis,
    run_envelope_analysis,
)
from .errors import (
    ConfigurationTooFineError,
    ConsistencyWarning,
    EnvelopeError,
    InvalidInputError,
)
from .ions import IonData, NumpyIonData, UNRANGED
from .options import EnvelopeOptions
from .results import MemoryResultSink, ResultSink
from .species import SpeciesCatalog
MAJOR = 0
MINOR = 1
MICRO = 0
__version__ = f'{MAJOR:d}.{MINOR:d}.{MICRO:d}'
