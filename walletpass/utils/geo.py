"""
Geo point normalisation for pass locations.
"""
import math
from numbers import Real
from typing import Any, Dict, Mapping, Sequence, Union

GeoPoint = Union[Sequence[float], Mapping[str, Any]]


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def get_geo_point(point: GeoPoint) -> Dict[str, float]:
    """
    Return `{longitude, latitude[, altitude]}` from a GeoJSON array
    `[lng, lat(, alt)]`, a `{lat, lng, alt?}` mapping or a
    `{longitude, latitude, altitude?|elevation?}` mapping.

    Raises:
        ValueError: On an unknown point format
    """
    if point is None:
        raise ValueError("Can't get coordinates from None")

    if isinstance(point, (list, tuple)):
        if not 2 <= len(point) <= 3 or not all(_is_number(n) for n in point):
            raise ValueError(
                f"Invalid GeoJSON array of numbers, length must be 2 to 3, received {len(point)}"
            )
        result = {"longitude": point[0], "latitude": point[1]}
        if len(point) == 3:
            result["altitude"] = point[2]
        return result

    if isinstance(point, Mapping):
        if "lat" in point and "lng" in point:
            result = {"longitude": point["lng"], "latitude": point["lat"]}
            altitude = point.get("alt")
        elif "longitude" in point and "latitude" in point:
            result = {"longitude": point["longitude"], "latitude": point["latitude"]}
            altitude = point.get("altitude", point.get("elevation"))
        else:
            raise ValueError(f"Unknown geo point format: {dict(point)!r}")
        if altitude is not None:
            result["altitude"] = altitude
        if not all(_is_number(v) for v in result.values()):
            raise ValueError(f"Geo point coordinates must be finite numbers: {dict(point)!r}")
        return result

    raise ValueError(f"Unknown geo point format: {point!r}")
