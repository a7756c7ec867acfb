"""Parser for ``show-bond --with-funding`` JSON output.

Fails closed: any missing required field or non-numeric value raises
``BondParseError`` instead of producing a default. Amounts are emitted by
the CLI as strings such as ``"1.5 SOLs"``; the unit suffix is stripped.
"""

from __future__ import annotations

import json
import math
from typing import TYPE_CHECKING, Any

from marinade_bond_monitor.errors.bond_errors import AddressMismatchError, BondParseError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from marinade_bond_monitor.bonds.models import AccountTarget, FieldSpec

_SOL_SUFFIXES = (" SOLs", " SOL")

# Identity label → dotted path in the CLI output
_LABEL_PATHS = {
    "bond_account": "publicKey",
    "vote_account": "account.voteAccount",
    "node_pubkey": "voteAccount.nodePubkey",
}

_MISSING = object()


def _lookup(data: dict[str, Any], path: str) -> Any:
    node: Any = data
    for key in path.split("."):
        if not isinstance(node, dict) or key not in node:
            return _MISSING
        node = node[key]
    return node


def to_number(value: Any, source: str) -> float:
    """Convert a JSON value to a finite float.

    Raises:
        BondParseError: If the value is not a number or numeric string.
    """
    if isinstance(value, bool) or value is None:
        raise BondParseError(f"field {source!r} is not numeric: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        for suffix in _SOL_SUFFIXES:
            if text.endswith(suffix):
                text = text[: -len(suffix)].strip()
                break
        try:
            number = float(text)
        except ValueError:
            raise BondParseError(f"field {source!r} is not numeric: {value!r}") from None
    else:
        raise BondParseError(f"field {source!r} is not numeric: {value!r}")

    if not math.isfinite(number):
        raise BondParseError(f"field {source!r} is not finite: {value!r}")
    return number


def parse_bond_output(
    stdout: str,
    target: AccountTarget,
    fields: Iterable[FieldSpec],
    *,
    verify_address: bool = True,
) -> tuple[dict[str, float], dict[str, str]]:
    """Map raw CLI output to metric values and identity labels.

    Args:
        stdout: Raw standard output of the CLI.
        target: The account the output was requested for.
        fields: Field → metric mapping to extract.
        verify_address: Check the output belongs to ``target.address``.

    Returns:
        ``(values, labels)`` — values keyed by metric suffix, labels keyed
        by label name. Optional fields absent from the output are omitted.

    Raises:
        BondParseError: Output is not a JSON object, or a field is missing
            or malformed.
        AddressMismatchError: The output describes another account.
    """
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise BondParseError(f"failed to decode bond data as JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise BondParseError(f"expected a JSON object, got {type(data).__name__}")

    labels: dict[str, str] = {}
    for label, path in _LABEL_PATHS.items():
        raw = _lookup(data, path)
        if isinstance(raw, str) and raw:
            labels[label] = raw

    if verify_address:
        bond_account = labels.get("bond_account", "")
        vote_account = labels.get("vote_account", "")
        if (bond_account or vote_account) and target.address not in (bond_account, vote_account):
            raise AddressMismatchError(target.address, bond_account, vote_account)

    values: dict[str, float] = {}
    for spec in fields:
        raw = _lookup(data, spec.source)
        if raw is _MISSING:
            if spec.required:
                raise BondParseError(f"missing required field {spec.source!r}")
            continue
        values[spec.metric] = to_number(raw, spec.source)

    return values, labels
