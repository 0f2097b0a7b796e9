"""
Ion data source package for aptEnvelope.

This package provides the interface the envelope analysis reads ion data
through, and an in-memory implementation.

Classes
-------
IonData
    Abstract data source: chunked positions/species, catalog, counts, extents.
NumpyIonData
    In-memory NumPy array data source.
"""

from ._base import IonData, UNRANGED
from .numpy import NumpyIonData


__all__ = [
    "IonData",
    "NumpyIonData",
    "UNRANGED",
]
