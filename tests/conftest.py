"""Shared test fixtures for the bond monitor test suite."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import pytest

from marinade_bond_monitor.bonds.command import CommandResult
from marinade_bond_monitor.bonds.models import AccountTarget

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

_BOND_ADDRESS = "BondAcc1111111111111111111111111111111111111"
_VOTE_ADDRESS = "VoteAcc1111111111111111111111111111111111111"
_NODE_PUBKEY = "NodeKey1111111111111111111111111111111111111"


def _show_bond_payload(**overrides: Any) -> dict[str, Any]:
    """A ``show-bond --with-funding`` JSON document as the CLI prints it."""
    payload: dict[str, Any] = {
        "programId": "vBoNdEvzMrSai7is21XgVYik65mqtaKXuSdMBJ1xkW4",
        "publicKey": _BOND_ADDRESS,
        "account": {
            "config": "vbMaRfmTCg92HWGzmd53APkMNpPnGVGZTUHwUJQkXAU",
            "voteAccount": _VOTE_ADDRESS,
            "authority": "AuthKey111111111111111111111111111111111111",
        },
        "voteAccount": {
            "nodePubkey": _NODE_PUBKEY,
            "authorizedWithdrawer": "Withdrawer1111111111111111111111111111111111",
            "commission": 5,
        },
        "amountOwned": "1000.5 SOLs",
        "amountActive": "900.25 SOLs",
        "numberActiveStakeAccounts": 3,
        "amountAtSettlements": "100.25 SOLs",
        "numberSettlementStakeAccounts": 1,
        "amountToWithdraw": "0 SOLs",
        "withdrawRequest": "<NOT EXISTING>",
        "bondMint": "MintKey111111111111111111111111111111111111",
    }
    payload.update(overrides)
    return payload


def _ok_result(payload: dict[str, Any] | str) -> CommandResult:
    stdout = payload if isinstance(payload, str) else json.dumps(payload)
    return CommandResult(returncode=0, stdout=stdout, stderr="")


class FakeRunner:
    """In-memory ``CommandRunner`` keyed by the address argument.

    Responses are either a ``CommandResult`` or an exception to raise.
    ``hold(address)`` blocks that address until the returned event is set.
    """

    def __init__(self, responses: dict[str, CommandResult | Exception] | None = None) -> None:
        self.responses: dict[str, CommandResult | Exception] = dict(responses or {})
        self.calls: list[list[str]] = []
        self._gates: dict[str, asyncio.Event] = {}

    def hold(self, address: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[address] = gate
        return gate

    async def run(self, args: Sequence[str], *, timeout: float) -> CommandResult:
        self.calls.append(list(args))
        address = args[2]
        gate = self._gates.get(address)
        if gate is not None:
            await gate.wait()
        response = self.responses.get(address)
        if response is None:
            return CommandResult(returncode=1, stdout="", stderr=f"unknown address {address}")
        if isinstance(response, Exception):
            raise response
        return response


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def bond_address() -> str:
    """Bond account address that ``bond_payload()`` describes."""
    return _BOND_ADDRESS


@pytest.fixture
def bond_target(bond_address: str) -> AccountTarget:
    return AccountTarget(address=bond_address, name="main")


@pytest.fixture
def bond_payload() -> Callable[..., dict[str, Any]]:
    """Factory for CLI output documents; keyword arguments override keys."""
    return _show_bond_payload


@pytest.fixture
def ok_result() -> Callable[[dict[str, Any] | str], CommandResult]:
    """Factory for a successful ``CommandResult`` printing the given payload."""
    return _ok_result


@pytest.fixture
def make_runner() -> type[FakeRunner]:
    return FakeRunner


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def monitor_config():
    """Provide a MonitorConfig for one bond account with safe defaults."""
    from marinade_bond_monitor.config.settings import AddressConfig, MonitorConfig

    return MonitorConfig(
        addresses=[AddressConfig(address=_BOND_ADDRESS, name="main")],
        bonds_cli_bin_path="validator-bonds-institutional",
        fetch_interval=30,
        command_timeout=5,
        listen_addr="127.0.0.1:9100",
    )
