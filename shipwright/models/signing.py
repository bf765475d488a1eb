"""macOS signing and notarization state models."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict


class SigningState(str, Enum):
    """States of the signing/notarization machine for one job."""

    UNSIGNED = "unsigned"
    KEYCHAIN_PROVISIONED = "keychain_provisioned"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Strictly linear until the verdict. Any failure before submission is a
# SigningFailure and leaves the machine where it stopped.
SIGNING_TRANSITIONS: dict[SigningState, set[SigningState]] = {
    SigningState.UNSIGNED: {SigningState.KEYCHAIN_PROVISIONED},
    SigningState.KEYCHAIN_PROVISIONED: {SigningState.SIGNED},
    SigningState.SIGNED: {SigningState.SUBMITTED},
    SigningState.SUBMITTED: {SigningState.ACCEPTED, SigningState.REJECTED},
    SigningState.ACCEPTED: set(),
    SigningState.REJECTED: set(),
}


class NotarizationVerdict(BaseModel):
    """Classified result of a notarization submission.

    ``exit_code`` is recorded for diagnostics only; it never decides
    ``accepted``.
    """

    model_config = ConfigDict(frozen=True)

    accepted: bool
    status: str
    source: Literal["json", "text"]
    submission_id: str | None = None
    exit_code: int = 0
    raw_output: str = ""
