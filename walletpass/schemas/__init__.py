# Schemas package
from .pass_descriptor import NFC, Barcode, Beacon, Location, PassDescriptor, PassField, PassStructure

__all__ = [
    "NFC",
    "Barcode",
    "Beacon",
    "Location",
    "PassDescriptor",
    "PassField",
    "PassStructure",
]
