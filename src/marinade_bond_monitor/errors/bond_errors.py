"""Errors raised while fetching and parsing bond data for one account."""

from __future__ import annotations

from marinade_bond_monitor.errors.monitor_errors import BondMonitorError

# Output excerpts attached to error messages are cut to this many characters
_EXCERPT_LIMIT = 500


def _excerpt(text: str) -> str:
    text = text.strip()
    if len(text) <= _EXCERPT_LIMIT:
        return text
    return text[:_EXCERPT_LIMIT] + "..."


class CommandError(BondMonitorError):
    """The external CLI could not be run or exited unsuccessfully.

    Attributes:
        returncode: Exit status, or ``None`` when the process never completed.
    """

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        code: str = "io",
    ) -> None:
        super().__init__(message, status_code=502, code=code)
        self.returncode = returncode

    @classmethod
    def from_exit(cls, returncode: int, stdout: str, stderr: str) -> CommandError:
        """Build the error for a process that exited with a non-zero status."""
        return cls(
            f"show-bond command failed with exit code {returncode}: "
            f"stdout: {_excerpt(stdout)!r}, stderr: {_excerpt(stderr)!r}",
            returncode=returncode,
            code="exit",
        )


class CommandTimeoutError(CommandError):
    """The external CLI did not finish within the configured timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"command timed out after {timeout:g}s", code="timeout")
        self.timeout = timeout


class BondParseError(BondMonitorError):
    """The CLI output could not be mapped to bond values."""

    def __init__(self, message: str, *, code: str = "parse") -> None:
        super().__init__(message, status_code=502, code=code)


class AddressMismatchError(BondParseError):
    """The CLI returned data for a different bond or vote account."""

    def __init__(self, address: str, bond_account: str, vote_account: str) -> None:
        super().__init__(
            f"bond data does not match the requested address {address} "
            f"(bond account {bond_account or '-'}, vote account {vote_account or '-'})",
            code="address",
        )
        self.address = address
