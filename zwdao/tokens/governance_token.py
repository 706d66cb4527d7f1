"""
ZWD Governance Token

Fungible governance token whose balances double as voting power:
  - transfer / burn are callable by any holder
  - mint is reserved for the configured DAO core identity
  - total supply is capped at max_supply and always equals the sum of balances
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..constants import (
    TOKEN_DECIMALS,
    TOKEN_MAX_SUPPLY,
    TOKEN_NAME,
    TOKEN_SYMBOL,
)
from ..exceptions import (
    ConfigurationError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidRecipientError,
    NotAuthorizedError,
    PeerNotConfiguredError,
    SupplyExceededError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TokenTransferEvent:
    """Emitted on every successful transfer."""
    token_symbol: str
    sender: str
    recipient: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class TokenMintEvent:
    """Emitted when the DAO core mints new supply."""
    token_symbol: str
    recipient: str
    amount: int
    total_supply: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Mint",
            "token": self.token_symbol,
            "to": self.recipient,
            "amount": self.amount,
            "totalSupply": self.total_supply,
        }


@dataclass(frozen=True)
class TokenBurnEvent:
    """Emitted when a holder burns tokens."""
    token_symbol: str
    sender: str
    amount: int
    total_supply: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Burn",
            "token": self.token_symbol,
            "from": self.sender,
            "amount": self.amount,
            "totalSupply": self.total_supply,
        }


def _require_positive(amount: int, action: str):
    # bool is an int subclass; True must not pass as an amount of 1
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(f"{action} amount must be a positive integer, got {amount!r}")


# ══════════════════════════════════════════════════════════════════════
#  GOVERNANCE TOKEN
# ══════════════════════════════════════════════════════════════════════

class GovernanceToken:
    """
    Governance token ledger.

    Mirrors ERC-20 semantics for the parts the DAO needs:
        - balance_of(account) → int
        - transfer(amount, sender, recipient)
        - burn(amount, sender)
        - mint(amount, recipient, caller)   (DAO core only)
        - total_supply → int

    Privileged calls take the caller identity explicitly and compare it
    with the stored DAO core principal.
    """

    def __init__(
        self,
        owner: str,
        identity: str = "zwdao.governance-token",
        *,
        name: str = TOKEN_NAME,
        symbol: str = TOKEN_SYMBOL,
        decimals: int = TOKEN_DECIMALS,
        max_supply: int = TOKEN_MAX_SUPPLY,
        allocations: Optional[Mapping[str, int]] = None,
    ):
        """
        Args:
            owner: Deployer identity, the only caller allowed to set the DAO core
            identity: This ledger's own principal
            name: Human-readable token name
            symbol: Short ticker
            decimals: Fractional digits (display only; amounts are minor units)
            max_supply: Upper bound on total supply
            allocations: Genesis balances, account → amount
        """
        if not owner:
            raise ConfigurationError("Token owner cannot be empty")
        if not name:
            raise ConfigurationError("Token name cannot be empty")
        if not symbol:
            raise ConfigurationError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise ConfigurationError(f"Decimals must be 0-18, got {decimals}")
        if max_supply <= 0:
            raise ConfigurationError("Max supply must be positive")

        self.owner = owner
        self.identity = identity
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._max_supply = max_supply
        self._dao_core: Optional[str] = None

        self._balances: Dict[str, int] = {}
        self._total_supply = 0
        self._events: List[Any] = []

        for account, amount in (allocations or {}).items():
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                raise ConfigurationError(f"Invalid genesis allocation for {account}: {amount!r}")
            if amount == 0:
                continue
            self._balances[account] = self._balances.get(account, 0) + amount
            self._total_supply += amount
        if self._total_supply > max_supply:
            raise ConfigurationError(
                f"Genesis allocations {self._total_supply} exceed max supply {max_supply}"
            )

        logger.info(
            f"Governance token deployed: {symbol} ({name}), "
            f"supply={self._total_supply}, max={max_supply}"
        )

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    @property
    def max_supply(self) -> int:
        return self._max_supply

    @property
    def dao_core(self) -> Optional[str]:
        return self._dao_core

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def holders(self) -> Dict[str, int]:
        return {a: b for a, b in self._balances.items() if b > 0}

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── Administration ────────────────────────────────────────────────

    def set_dao_core(self, caller: str, core_identity: str):
        """Owner-only: record the single principal allowed to mint."""
        if caller != self.owner:
            raise NotAuthorizedError(f"{caller} is not the token owner")
        self._dao_core = core_identity
        logger.info(f"Token {self.symbol}: DAO core set to {core_identity}")

    # ── Core operations ───────────────────────────────────────────────

    def transfer(self, amount: int, sender: str, recipient: str) -> TokenTransferEvent:
        """Move *amount* from sender to recipient. Supply is unchanged."""
        _require_positive(amount, "Transfer")
        if sender == recipient:
            raise InvalidRecipientError("Cannot transfer to self")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

        event = TokenTransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    def mint(self, amount: int, recipient: str, caller: str) -> TokenMintEvent:
        """
        Mint new supply to *recipient*.

        Only the configured DAO core may mint, and never past max_supply.
        """
        _require_positive(amount, "Mint")
        if self._dao_core is None:
            raise PeerNotConfiguredError(f"Token {self.symbol} has no DAO core configured")
        if caller != self._dao_core:
            raise NotAuthorizedError(f"{caller} is not authorized to mint {self.symbol}")

        new_supply = self._total_supply + amount
        if new_supply > self._max_supply:
            raise SupplyExceededError(
                f"Minting {amount} would exceed max supply "
                f"({self._total_supply} + {amount} > {self._max_supply})"
            )

        self._total_supply = new_supply
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

        event = TokenMintEvent(
            token_symbol=self.symbol,
            recipient=recipient,
            amount=amount,
            total_supply=new_supply,
        )
        self._events.append(event)
        logger.info(f"Mint: {amount} {self.symbol} → {recipient} (supply={new_supply})")
        return event

    def burn(self, amount: int, sender: str) -> TokenBurnEvent:
        """Destroy *amount* of the sender's balance."""
        _require_positive(amount, "Burn")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < burn amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._total_supply -= amount

        event = TokenBurnEvent(
            token_symbol=self.symbol,
            sender=sender,
            amount=amount,
            total_supply=self._total_supply,
        )
        self._events.append(event)
        logger.info(f"Burn: {sender} burned {amount} {self.symbol}")
        return event

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        """Capture mutable state for rollback."""
        return {
            "balances": dict(self._balances),
            "total_supply": self._total_supply,
            "dao_core": self._dao_core,
            "events": list(self._events),
        }

    def restore(self, snapshot: Dict[str, Any]):
        self._balances = dict(snapshot["balances"])
        self._total_supply = snapshot["total_supply"]
        self._dao_core = snapshot["dao_core"]
        self._events = list(snapshot["events"])

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "identity": self.identity,
            "owner": self.owner,
            "daoCore": self._dao_core,
            "totalSupply": self._total_supply,
            "maxSupply": self._max_supply,
            "holders": len(self.holders()),
            "balances": self.holders(),
        }

    def __repr__(self) -> str:
        return f"<GovernanceToken {self.symbol} supply={self._total_supply}>"
