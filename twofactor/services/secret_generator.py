"""Shared secret generation and provisioning URI rendering."""

import base64
import io
import secrets
from urllib.parse import quote

import qrcode

from twofactor.core.config import settings
from twofactor.core.exceptions import RandomSourceUnavailable
from twofactor.core.logging_config import get_logger
from twofactor.models.secret import Secret

logger = get_logger(__name__)

MIN_SECRET_BITS = 80


def random_bytes(length: int) -> bytes:
    """
    Read ``length`` bytes from the operating system CSPRNG.

    Raises:
        RandomSourceUnavailable: If the OS cannot provide secure randomness
    """
    try:
        return secrets.token_bytes(length)
    except (NotImplementedError, OSError) as e:
        logger.critical("random_source_unavailable", error=str(e))
        raise RandomSourceUnavailable() from e


def generate_secret(length_bits: int | None = None) -> Secret:
    """
    Generate a new random shared secret.

    Args:
        length_bits: Entropy in bits, at least 80 and a multiple of 8

    Returns:
        New Secret

    Raises:
        ValueError: If the requested length is too short or not byte aligned
        RandomSourceUnavailable: If the OS CSPRNG cannot be used
    """
    if length_bits is None:
        length_bits = settings.SECRET_LENGTH_BITS
    if length_bits < MIN_SECRET_BITS:
        raise ValueError(f"Secrets must have at least {MIN_SECRET_BITS} bits")
    if length_bits % 8:
        raise ValueError("Secret length must be a multiple of 8 bits")
    return Secret(raw=random_bytes(length_bits // 8))


def provisioning_uri(
    secret: Secret,
    account: str,
    issuer: str | None = None,
    digits: int | None = None,
    period: int | None = None,
    algorithm: str | None = None,
) -> str:
    """
    Build the otpauth:// URI consumed by authenticator apps.

    Format: otpauth://totp/{issuer}:{account}?secret={base32}&issuer={issuer}&digits={d}&period={p}

    The algorithm parameter is only added for non SHA1 configurations since
    several authenticator apps ignore or reject it.
    """
    issuer = issuer or settings.TOTP_ISSUER
    digits = digits or settings.TOTP_DIGITS
    period = period or settings.TOTP_PERIOD_SECONDS
    algorithm = (algorithm or settings.TOTP_ALGORITHM).upper()

    label = f"{quote(issuer, safe='')}:{quote(account, safe='')}"
    uri = (
        f"otpauth://totp/{label}"
        f"?secret={secret.base32}"
        f"&issuer={quote(issuer, safe='')}"
        f"&digits={digits}"
        f"&period={period}"
    )
    if algorithm != "SHA1":
        uri += f"&algorithm={algorithm}"
    return uri


def build_qr_code(uri: str) -> qrcode.QRCode:
    """QR code for a provisioning URI, sized to fit."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)
    return qr


def qr_code_data_uri(uri: str) -> str:
    """
    Render a provisioning URI as a QR code image.

    Args:
        uri: otpauth:// provisioning URI

    Returns:
        PNG image as a data URI, ready for an <img> tag
    """
    img = build_qr_code(uri).make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    img_base64 = base64.b64encode(buffer.getvalue()).decode()

    return f"data:image/png;base64,{img_base64}"
