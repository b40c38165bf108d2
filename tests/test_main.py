"""Tests for the command line entry point."""

from unittest.mock import patch

import pytest

from travelbook import main as cli


def test_quote_vehicle_with_driver(capsys):
    """Test the quote command prices a car hire with a driver."""
    cli.cmd_quote(["vehicle", "5000", "2024-01-01", "2024-01-03", "2", "--driver"])

    out = capsys.readouterr().out
    assert "Days:  2" in out
    assert "Rs. 1,410,000" in out


def test_quote_requires_type_and_price(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.cmd_quote(["vehicle"])

    assert exc_info.value.code == 1
    assert "Usage" in capsys.readouterr().out


def test_unknown_command_exits_nonzero(capsys):
    with patch("sys.argv", ["travelbook", "frobnicate"]):
        with pytest.raises(SystemExit) as exc_info:
            cli.main()

    assert exc_info.value.code == 1


def test_invalid_service_type_reported(capsys):
    with patch("sys.argv", ["travelbook", "quote", "spaceship", "100"]):
        with pytest.raises(SystemExit) as exc_info:
            cli.main()

    assert exc_info.value.code == 1
    assert "Invalid argument" in capsys.readouterr().out
