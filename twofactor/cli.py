"""
twofa - command line tool for TOTP secrets and codes

Usage:
    twofa generate --account alice@example.com
    twofa uri JBSWY3DPEHPK3PXP alice@example.com
    twofa qr JBSWY3DPEHPK3PXP alice@example.com --output qr.png
    twofa code JBSWY3DPEHPK3PXP
    twofa verify JBSWY3DPEHPK3PXP 123456
"""

import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from twofactor.core.config import settings
from twofactor.core.exceptions import MalformedCode, RandomSourceUnavailable
from twofactor.models.secret import Secret
from twofactor.services import secret_generator
from twofactor.services.totp import TOTPEngine

app = typer.Typer(help="TOTP two-factor secret and code tool", no_args_is_help=True)
console = Console()


def print_error(message: str):
    """Print error message."""
    console.print(f"[red]✗ Error:[/red] {message}", style="bold")


def print_success(message: str):
    """Print success message."""
    console.print(f"[green]✓ Success:[/green] {message}", style="bold")


def parse_secret(value: str) -> Secret:
    try:
        return Secret.from_base32(value)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=2) from e


def build_engine(digits: Optional[int], period: Optional[int], algorithm: Optional[str]) -> TOTPEngine:
    try:
        return TOTPEngine(digits=digits, period=period, algorithm=algorithm)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=2) from e


@app.command()
def generate(
    bits: int = typer.Option(settings.SECRET_LENGTH_BITS, "--bits", "-b", help="Secret entropy in bits"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account label for the URI"),
    issuer: Optional[str] = typer.Option(None, "--issuer", "-i"),
):
    """Generate a new random secret."""
    try:
        secret = secret_generator.generate_secret(bits)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=2) from e
    except RandomSourceUnavailable as e:
        print_error(e.message)
        raise typer.Exit(code=1) from e

    table = Table(title="New TOTP secret", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", overflow="fold")
    table.add_row("Secret", secret.base32)
    table.add_row("Manual entry", secret.manual_entry_key)
    table.add_row("Bits", str(secret.bits))
    if account:
        table.add_row("URI", secret_generator.provisioning_uri(secret, account, issuer=issuer))
    console.print(table)


@app.command()
def uri(
    secret: str = typer.Argument(..., help="Base32 secret"),
    account: str = typer.Argument(..., help="Account label, e.g. an email address"),
    issuer: Optional[str] = typer.Option(None, "--issuer", "-i"),
    digits: Optional[int] = typer.Option(None, "--digits", "-d", min=6, max=10),
    period: Optional[int] = typer.Option(None, "--period", "-p"),
    algorithm: Optional[str] = typer.Option(None, "--algorithm"),
):
    """Print the otpauth:// provisioning URI for a secret."""
    build_engine(digits, period, algorithm)
    value = secret_generator.provisioning_uri(
        parse_secret(secret),
        account,
        issuer=issuer,
        digits=digits,
        period=period,
        algorithm=algorithm,
    )
    console.print(value, soft_wrap=True, highlight=False)


@app.command()
def qr(
    secret: str = typer.Argument(..., help="Base32 secret"),
    account: str = typer.Argument(..., help="Account label, e.g. an email address"),
    issuer: Optional[str] = typer.Option(None, "--issuer", "-i"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write a PNG instead of printing"),
):
    """Render the provisioning URI as a QR code."""
    value = secret_generator.provisioning_uri(parse_secret(secret), account, issuer=issuer)
    code = secret_generator.build_qr_code(value)

    if output is None:
        code.print_ascii(invert=True)
        return

    code.make_image(fill_color="black", back_color="white").save(str(output))
    print_success(f"QR code written to {output}")


@app.command()
def code(
    secret: str = typer.Argument(..., help="Base32 secret"),
    at: Optional[int] = typer.Option(None, "--at", help="Unix time, defaults to now"),
    digits: Optional[int] = typer.Option(None, "--digits", "-d", min=6, max=10),
    period: Optional[int] = typer.Option(None, "--period", "-p"),
    algorithm: Optional[str] = typer.Option(None, "--algorithm"),
):
    """Print the code for a secret at a point in time."""
    engine = build_engine(digits, period, algorithm)
    timestamp = at if at is not None else time.time()
    console.print(engine.compute_code(parse_secret(secret), timestamp), highlight=False)

    if at is None:
        remaining = engine.period - int(timestamp) % engine.period
        console.print(f"[dim]valid for {remaining}s[/dim]")


@app.command()
def verify(
    secret: str = typer.Argument(..., help="Base32 secret"),
    submitted: str = typer.Argument(..., metavar="CODE", help="Code to check"),
    at: Optional[int] = typer.Option(None, "--at", help="Unix time, defaults to now"),
    window: int = typer.Option(settings.TOTP_WINDOW_STEPS, "--window", "-w", min=0),
    digits: Optional[int] = typer.Option(None, "--digits", "-d", min=6, max=10),
    period: Optional[int] = typer.Option(None, "--period", "-p"),
    algorithm: Optional[str] = typer.Option(None, "--algorithm"),
):
    """
    Check a code against a secret.

    Exits 0 when the code is valid, 1 when it does not match and 2 when it
    is malformed.
    """
    engine = build_engine(digits, period, algorithm)
    timestamp = at if at is not None else time.time()

    try:
        match = engine.verify(parse_secret(secret), submitted, timestamp, window_steps=window)
    except MalformedCode as e:
        print_error(f"Code must be exactly {engine.digits} digits")
        raise typer.Exit(code=2) from e

    if not match.valid:
        print_error("Code does not match")
        raise typer.Exit(code=1)

    drift = match.matched_step - engine.counter(timestamp)
    console.print(
        Panel(f"Code is valid (step {match.matched_step}, drift {drift:+d})", style="green")
    )


if __name__ == "__main__":
    app()
