"""
Schema for pass.json (PassKit Package Format).

Special values are normalised when set, both at construction and on
attribute assignment:
- colors become `rgb(r, g, b)`
- dates become W3C date strings
- locations accept GeoJSON arrays and {lat, lng} mappings

Keys that are not modelled here are kept as-is and written back to pass.json.
Required top level keys are optional on the model; validate_descriptor()
reports the missing ones by name.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from walletpass.core.colors import to_pass_color
from walletpass.core.constants import (
    BARCODE_FORMATS,
    DATE_STYLES,
    FORMAT_VERSION,
    PASS_STYLES,
    STRUCTURE_FIELDS,
    TRANSIT_TYPES,
)
from walletpass.utils.geo import get_geo_point
from walletpass.utils.w3cdate import get_w3c_date_string


def _w3c_date(v):
    if v is None:
        return None
    if not isinstance(v, (str, datetime)):
        raise ValueError(f"date should be either a string or datetime, received {type(v).__name__}")
    return get_w3c_date_string(v)


class PassField(BaseModel):
    """A field in one of headerFields / primaryFields / ... / backFields."""
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    key: str
    value: Any
    label: Optional[str] = None
    changeMessage: Optional[str] = None
    textAlignment: Optional[str] = None
    dateStyle: Optional[str] = None
    timeStyle: Optional[str] = None
    isRelative: Optional[bool] = None
    ignoresTimeZone: Optional[bool] = None
    currencyCode: Optional[str] = None
    numberStyle: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def normalize_value(cls, v):
        if isinstance(v, datetime):
            return get_w3c_date_string(v)
        return v

    @field_validator("dateStyle", "timeStyle")
    @classmethod
    def validate_date_style(cls, v):
        if v is not None and v not in DATE_STYLES:
            raise ValueError(f"Unknown date style {v}, must be one of: {', '.join(sorted(DATE_STYLES))}")
        return v


class PassStructure(BaseModel):
    """Keys of a style dictionary (boardingPass, coupon, eventTicket, storeCard, generic)."""
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    headerFields: Optional[List[PassField]] = None
    primaryFields: Optional[List[PassField]] = None
    secondaryFields: Optional[List[PassField]] = None
    auxiliaryFields: Optional[List[PassField]] = None
    backFields: Optional[List[PassField]] = None
    transitType: Optional[str] = None

    @field_validator("transitType")
    @classmethod
    def validate_transit_type(cls, v):
        if v is not None and v not in TRANSIT_TYPES:
            raise ValueError(f"Unknown value {v} for transit type")
        return v

    def iter_fields(self):
        for name in STRUCTURE_FIELDS:
            for field in getattr(self, name) or []:
                yield name, field


class Barcode(BaseModel):
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    format: str
    message: str
    messageEncoding: str = "iso-8859-1"
    altText: Optional[str] = None

    @field_validator("format")
    @classmethod
    def validate_format(cls, v):
        if v not in BARCODE_FORMATS:
            raise ValueError(f"Barcode format value {v} is invalid!")
        return v


class Location(BaseModel):
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    longitude: float
    latitude: float
    altitude: Optional[float] = None
    relevantText: Optional[str] = None


class Beacon(BaseModel):
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    proximityUUID: str
    major: Optional[int] = Field(None, ge=0, le=65535)
    minor: Optional[int] = Field(None, ge=0, le=65535)
    relevantText: Optional[str] = None


class NFC(BaseModel):
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    message: str
    encryptionPublicKey: Optional[str] = None


class PassDescriptor(BaseModel):
    """Top level keys of pass.json."""
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    # Required (checked by validate_descriptor)
    description: Optional[str] = None
    organizationName: Optional[str] = None
    passTypeIdentifier: Optional[str] = None
    serialNumber: Optional[str] = None
    teamIdentifier: Optional[str] = None

    # Companion app / expiration / relevance
    appLaunchURL: Optional[str] = None
    associatedStoreIdentifiers: Optional[List[int]] = None
    userInfo: Optional[Dict[str, Any]] = None
    expirationDate: Optional[str] = None
    voided: Optional[bool] = None
    relevantDate: Optional[str] = None
    maxDistance: Optional[int] = None
    locations: Optional[List[Location]] = None
    beacons: Optional[List[Beacon]] = None

    # Visual appearance
    barcodes: Optional[List[Barcode]] = None
    barcode: Optional[Barcode] = None
    backgroundColor: Optional[str] = None
    foregroundColor: Optional[str] = None
    labelColor: Optional[str] = None
    groupingIdentifier: Optional[str] = None
    logoText: Optional[str] = None
    suppressStripShine: Optional[bool] = None
    sharingProhibited: Optional[bool] = None

    # Web service
    webServiceURL: Optional[str] = None
    authenticationToken: Optional[str] = None

    nfc: Optional[NFC] = None

    # Pass styles (exactly one is expected)
    boardingPass: Optional[PassStructure] = None
    coupon: Optional[PassStructure] = None
    eventTicket: Optional[PassStructure] = None
    storeCard: Optional[PassStructure] = None
    generic: Optional[PassStructure] = None

    @field_validator("backgroundColor", "foregroundColor", "labelColor", mode="before")
    @classmethod
    def normalize_color(cls, v):
        if v is None:
            return None
        return to_pass_color(v)

    @field_validator("expirationDate", "relevantDate", mode="before")
    @classmethod
    def normalize_date(cls, v):
        return _w3c_date(v)

    @field_validator("maxDistance")
    @classmethod
    def validate_max_distance(cls, v):
        if v is not None and v <= 0:
            raise ValueError("maxDistance must be a positive integer distance in meters")
        return v

    @field_validator("associatedStoreIdentifiers", mode="before")
    @classmethod
    def filter_store_identifiers(cls, v):
        if v is None:
            return None
        identifiers = [n for n in v if isinstance(n, int) and not isinstance(n, bool)]
        return identifiers or None

    @field_validator("locations", mode="before")
    @classmethod
    def normalize_locations(cls, v):
        if v is None:
            return None
        locations = []
        for item in v:
            if isinstance(item, Location):
                locations.append(item)
                continue
            point = get_geo_point(item)
            if isinstance(item, dict) and item.get("relevantText"):
                point["relevantText"] = item["relevantText"]
            locations.append(point)
        return locations

    @field_validator("webServiceURL")
    @classmethod
    def validate_web_service_url(cls, v):
        if v is None:
            return None
        parsed = urlparse(v)
        if parsed.scheme not in ("https", "http") or not parsed.netloc:
            raise ValueError(f"webServiceURL must be an absolute http(s) URL, got {v}")
        return v

    @property
    def style(self) -> Optional[str]:
        """Name of the first style dictionary present, in PASS_STYLES order."""
        for style in PASS_STYLES:
            if getattr(self, style) is not None:
                return style
        return None

    @property
    def structure(self) -> Optional[PassStructure]:
        style = self.style
        return getattr(self, style) if style else None

    def add_location(self, point, relevant_text: Optional[str] = None) -> "PassDescriptor":
        """Append a location where the pass is relevant."""
        location = get_geo_point(point)
        if relevant_text:
            location["relevantText"] = relevant_text
        # reassign so validate_assignment runs
        self.locations = [*(self.locations or []), location]
        return self

    def to_pass_json(self) -> Dict[str, Any]:
        """pass.json content: every set key plus formatVersion."""
        data = self.model_dump(exclude_none=True)
        if data.get("barcodes") and "barcode" not in data:
            # iOS 8 and earlier only read the singular key
            data["barcode"] = data["barcodes"][0]
        data["formatVersion"] = FORMAT_VERSION
        return data
