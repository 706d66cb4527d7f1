"""
ZWDAO Exceptions

Categorical error taxonomy shared by the governance core, the treasury and
the governance token. Every concrete exception carries a stable ErrorCode;
the category is derived from the code's hundreds digit.
"""

from enum import IntEnum
from typing import Optional


class ErrorCategory(IntEnum):
    """Cause of a failed operation."""
    AUTHORIZATION = 1
    VALIDATION = 2
    STATE_CONFLICT = 3
    NOT_FOUND = 4
    EXECUTION = 5
    INTERNAL = 9


class ErrorCode(IntEnum):
    """Tagged failure codes. Values are part of the external interface."""
    # Authorization (1xx)
    NOT_AUTHORIZED = 100
    PEER_NOT_CONFIGURED = 101
    TREASURY_NOT_CONFIGURED = 102
    TOKEN_NOT_CONFIGURED = 103
    EXECUTION_ENGINE_NOT_CONFIGURED = 104
    STAKING_NOT_CONFIGURED = 105
    SUBMISSION_NOT_CONFIGURED = 106
    VOTING_MECHANISM_NOT_CONFIGURED = 107

    # Validation (2xx)
    INVALID_AMOUNT = 200
    INVALID_BUDGET = 201
    INVALID_PROPOSAL_TYPE = 202
    INVALID_IMPACT_METRIC = 203
    INVALID_MILESTONE = 204
    INVALID_RECIPIENT = 205
    INVALID_DELEGATE = 206
    INVALID_QUORUM = 207
    INVALID_VOTING_PERIOD = 208
    INVALID_REWARD = 209
    INVALID_TRANSACTION = 210
    INVALID_CONFIGURATION = 211

    # State conflict (3xx)
    PROPOSAL_NOT_ACTIVE = 300
    PROPOSAL_EXPIRED = 301
    ALREADY_VOTED = 302
    ALREADY_RELEASED = 303
    DELEGATION_LOOP = 304
    INSUFFICIENT_QUORUM = 305
    INSUFFICIENT_BALANCE = 306
    SUPPLY_EXCEEDED = 307

    # Not found (4xx)
    PROPOSAL_NOT_FOUND = 400

    # Execution (5xx)
    EXECUTION_FAILED = 500

    INTERNAL = 900

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value // 100)


class DAOException(Exception):
    """Base exception for ZWDAO."""
    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(self, message: str = ""):
        super().__init__(message or self.code.name)

    @property
    def category(self) -> ErrorCategory:
        return self.code.category


# ══════════════════════════════════════════════════════════════════════
#  AUTHORIZATION
# ══════════════════════════════════════════════════════════════════════

class AuthorizationError(DAOException):
    """Caller is not the required owner or peer."""
    code = ErrorCode.NOT_AUTHORIZED


class NotAuthorizedError(AuthorizationError):
    """Caller identity does not match the configured principal."""
    code = ErrorCode.NOT_AUTHORIZED


class PeerNotConfiguredError(AuthorizationError):
    """A privileged operation was called before its peer was set."""
    code = ErrorCode.PEER_NOT_CONFIGURED


class TreasuryNotConfiguredError(PeerNotConfiguredError):
    code = ErrorCode.TREASURY_NOT_CONFIGURED


class TokenNotConfiguredError(PeerNotConfiguredError):
    code = ErrorCode.TOKEN_NOT_CONFIGURED


class ExecutionEngineNotConfiguredError(PeerNotConfiguredError):
    code = ErrorCode.EXECUTION_ENGINE_NOT_CONFIGURED


class StakingNotConfiguredError(PeerNotConfiguredError):
    code = ErrorCode.STAKING_NOT_CONFIGURED


class SubmissionNotConfiguredError(PeerNotConfiguredError):
    code = ErrorCode.SUBMISSION_NOT_CONFIGURED


class VotingMechanismNotConfiguredError(PeerNotConfiguredError):
    code = ErrorCode.VOTING_MECHANISM_NOT_CONFIGURED


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════

class ValidationError(DAOException):
    """Malformed argument."""
    code = ErrorCode.INVALID_TRANSACTION


class InvalidAmountError(ValidationError):
    code = ErrorCode.INVALID_AMOUNT


class InvalidBudgetError(ValidationError):
    code = ErrorCode.INVALID_BUDGET


class InvalidProposalTypeError(ValidationError):
    code = ErrorCode.INVALID_PROPOSAL_TYPE


class InvalidImpactMetricError(ValidationError):
    code = ErrorCode.INVALID_IMPACT_METRIC


class InvalidMilestoneError(ValidationError):
    code = ErrorCode.INVALID_MILESTONE


class InvalidRecipientError(ValidationError):
    code = ErrorCode.INVALID_RECIPIENT


class InvalidDelegateError(ValidationError):
    code = ErrorCode.INVALID_DELEGATE


class InvalidQuorumError(ValidationError):
    code = ErrorCode.INVALID_QUORUM


class InvalidVotingPeriodError(ValidationError):
    code = ErrorCode.INVALID_VOTING_PERIOD


class InvalidRewardError(ValidationError):
    code = ErrorCode.INVALID_REWARD


class InvalidTransactionError(ValidationError, ValueError):
    """Transaction envelope is structurally invalid."""
    code = ErrorCode.INVALID_TRANSACTION


class ConfigurationError(ValidationError, ValueError):
    """Configuration error."""
    code = ErrorCode.INVALID_CONFIGURATION


# ══════════════════════════════════════════════════════════════════════
#  STATE CONFLICT
# ══════════════════════════════════════════════════════════════════════

class StateConflictError(DAOException):
    """Operation is legal in general but not in the current state."""
    code = ErrorCode.PROPOSAL_NOT_ACTIVE


class ProposalNotActiveError(StateConflictError):
    code = ErrorCode.PROPOSAL_NOT_ACTIVE


class VotingNotEndedError(ProposalNotActiveError):
    """Finalization attempted at or before the voting deadline."""
    code = ErrorCode.PROPOSAL_NOT_ACTIVE


class ProposalExpiredError(StateConflictError):
    code = ErrorCode.PROPOSAL_EXPIRED


class AlreadyVotedError(StateConflictError):
    code = ErrorCode.ALREADY_VOTED


class AlreadyReleasedError(StateConflictError):
    code = ErrorCode.ALREADY_RELEASED


class DelegationLoopError(StateConflictError):
    code = ErrorCode.DELEGATION_LOOP


class InsufficientQuorumError(StateConflictError):
    code = ErrorCode.INSUFFICIENT_QUORUM


class InsufficientBalanceError(StateConflictError):
    code = ErrorCode.INSUFFICIENT_BALANCE


class SupplyExceededError(StateConflictError):
    code = ErrorCode.SUPPLY_EXCEEDED


# ══════════════════════════════════════════════════════════════════════
#  NOT FOUND / EXECUTION
# ══════════════════════════════════════════════════════════════════════

class ProposalNotFoundError(DAOException):
    code = ErrorCode.PROPOSAL_NOT_FOUND


class ExecutionFailedError(DAOException):
    """A downstream ledger rejected the execution of an approved proposal."""
    code = ErrorCode.EXECUTION_FAILED

    def __init__(self, message: str = "", cause: Optional[DAOException] = None):
        super().__init__(message)
        self.cause = cause

    @property
    def cause_code(self) -> Optional[ErrorCode]:
        return self.cause.code if self.cause is not None else None
