"""
Pre-build checks for a pass descriptor and its image set.

Both run before any resource is read, so a bad request fails without disk
or crypto work.
"""
from typing import List

from walletpass.core.constants import MIN_AUTHENTICATION_TOKEN_LENGTH, PASS_STYLES, REQUIRED_FIELDS, REQUIRED_IMAGES
from walletpass.core.errors import PassValidationError
from walletpass.schemas.pass_descriptor import PassDescriptor
from walletpass.services.images import PassImages


def _check_web_service(descriptor: PassDescriptor, errors: List[str]) -> None:
    # authenticationToken and webServiceURL must be either both set or both absent
    if descriptor.webServiceURL:
        if not descriptor.authenticationToken:
            errors.append("While webServiceURL is present, authenticationToken also required!")
        elif len(descriptor.authenticationToken) < MIN_AUTHENTICATION_TOKEN_LENGTH:
            errors.append(
                f"authenticationToken must be at least {MIN_AUTHENTICATION_TOKEN_LENGTH} characters long!"
            )
    elif descriptor.authenticationToken:
        errors.append("authenticationToken is presented in Pass data while webServiceURL is missing!")


def _check_style(descriptor: PassDescriptor, errors: List[str]) -> None:
    styles = [style for style in PASS_STYLES if getattr(descriptor, style) is not None]
    if len(styles) > 1:
        errors.append(f"Pass must have exactly one style, found: {', '.join(styles)}")

    structure = descriptor.structure
    if structure is None:
        return
    if structure.transitType and descriptor.style != "boardingPass":
        errors.append("transitType field is only allowed at boarding passes")

    seen = set()
    for _name, field in structure.iter_fields():
        if field.key in seen:
            errors.append(f"Duplicate field key {field.key}")
        seen.add(field.key)


def validate_descriptor(descriptor: PassDescriptor) -> None:
    """
    Check required top level keys, the webServiceURL / authenticationToken
    pairing and the pass style.

    Raises:
        PassValidationError: With every problem found listed in .errors
    """
    errors = [f"Missing field {name}" for name in REQUIRED_FIELDS if not getattr(descriptor, name)]
    _check_web_service(descriptor, errors)
    _check_style(descriptor, errors)

    if errors:
        raise PassValidationError("; ".join(errors), errors)


def validate_images(images: PassImages) -> None:
    """
    Raises:
        PassValidationError: If icon or logo has no variant
    """
    errors = [f"Missing required image {name}.png" for name in REQUIRED_IMAGES if not images.has(name)]
    if errors:
        raise PassValidationError("; ".join(errors), errors)
