"""Tests for the twofa command line tool."""

import pytest
from typer.testing import CliRunner

from twofactor.cli import app

RFC_BASE32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"

runner = CliRunner()


def test_generate():
    result = runner.invoke(app, ["generate", "--account", "alice@example.com"])

    assert result.exit_code == 0
    assert "Secret" in result.output
    assert "otpauth://totp/" in result.output


def test_generate_rejects_short_secret():
    result = runner.invoke(app, ["generate", "--bits", "64"])

    assert result.exit_code == 2
    assert "at least 80 bits" in result.output


def test_uri():
    result = runner.invoke(app, ["uri", RFC_BASE32, "alice@example.com", "--issuer", "Example"])

    assert result.exit_code == 0
    assert result.output.strip() == (
        "otpauth://totp/Example:alice%40example.com"
        f"?secret={RFC_BASE32}&issuer=Example&digits=6&period=30"
    )


def test_uri_rejects_unknown_algorithm():
    result = runner.invoke(app, ["uri", RFC_BASE32, "alice", "--algorithm", "MD5"])
    assert result.exit_code == 2


def test_code_at_fixed_time():
    result = runner.invoke(app, ["code", RFC_BASE32, "--at", "59"])

    assert result.exit_code == 0
    assert result.output.strip() == "287082"


def test_code_eight_digits():
    result = runner.invoke(app, ["code", RFC_BASE32, "--at", "59", "--digits", "8"])

    assert result.exit_code == 0
    assert result.output.strip() == "94287082"


@pytest.mark.parametrize("command", ["code", "verify", "uri"])
def test_digits_out_of_range(command: str):
    args = {
        "code": ["code", RFC_BASE32],
        "verify": ["verify", RFC_BASE32, "28708200000"],
        "uri": ["uri", RFC_BASE32, "alice"],
    }[command]

    result = runner.invoke(app, [*args, "--digits", "11"])

    assert result.exit_code == 2
    assert result.exception is None or isinstance(result.exception, SystemExit)


@pytest.mark.parametrize(
    ("submitted", "exit_code"),
    [
        ("287082", 0),
        ("287083", 1),
        ("28708", 2),
    ],
)
def test_verify(submitted: str, exit_code: int):
    result = runner.invoke(app, ["verify", RFC_BASE32, submitted, "--at", "59", "--window", "0"])
    assert result.exit_code == exit_code


def test_invalid_secret():
    result = runner.invoke(app, ["code", "not base32!"])
    assert result.exit_code == 2


def test_qr_ascii():
    result = runner.invoke(app, ["qr", RFC_BASE32, "alice"])

    assert result.exit_code == 0
    assert len(result.output.splitlines()) > 10


def test_qr_png(tmp_path):
    output = tmp_path / "qr.png"

    result = runner.invoke(app, ["qr", RFC_BASE32, "alice", "--output", str(output)])

    assert result.exit_code == 0
    assert output.read_bytes().startswith(b"\x89PNG")
