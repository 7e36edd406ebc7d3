"""Minimal contract ABIs: function signatures and return types only."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import encode_hex, keccak

from .errors import ContractReadError, InvalidInputError


@dataclass(frozen=True)
class ContractFunction:
    """One contract function: canonical input types and output types."""

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return keccak(text=self.signature)[:4]

    def encode_call(self, args: Sequence[Any] = ()) -> bytes:
        if len(args) != len(self.inputs):
            raise InvalidInputError(
                f"{self.signature} expects {len(self.inputs)} args, got {len(args)}"
            )
        try:
            return self.selector + encode(list(self.inputs), list(args))
        except (EncodingError, TypeError, ValueError) as e:
            raise InvalidInputError(f"Cannot encode {self.signature}: {e}") from e

    def decode_result(self, data: bytes) -> Any:
        """Decode return data; single outputs are unwrapped."""
        if not data:
            raise ContractReadError(f"{self.signature} returned no data")
        try:
            values = decode(list(self.outputs), data)
        except (DecodingError, OverflowError, ValueError) as e:
            raise ContractReadError(f"Cannot decode {self.signature}: {e}") from e
        if len(self.outputs) == 1:
            return values[0]
        return values


def event_topic(signature: str) -> str:
    return encode_hex(keccak(text=signature))


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte indexed topic."""
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


def topic_to_int(topic: str) -> int:
    return int(topic, 16)


TRANSFER_TOPIC = event_topic("Transfer(address,address,uint256)")


# ---------------------------------------------------------------------------
# ERC20
# ---------------------------------------------------------------------------

ERC20_BALANCE_OF = ContractFunction("balanceOf", ("address",), ("uint256",))
ERC20_ALLOWANCE = ContractFunction("allowance", ("address", "address"), ("uint256",))
ERC20_DECIMALS = ContractFunction("decimals", (), ("uint8",))
ERC20_SYMBOL = ContractFunction("symbol", (), ("string",))

# ---------------------------------------------------------------------------
# Yearn V3 vault + APR oracle
# ---------------------------------------------------------------------------

VAULT_ASSET = ContractFunction("asset", (), ("address",))
VAULT_PRICE_PER_SHARE = ContractFunction("pricePerShare", (), ("uint256",))
VAULT_DEFAULT_QUEUE = ContractFunction("default_queue", ("uint256",), ("address",))
# (activation, last_report, current_debt, max_debt)
VAULT_STRATEGIES = ContractFunction(
    "strategies", ("address",), ("uint256", "uint256", "uint256", "uint256")
)
VAULT_CONVERT_TO_ASSETS = ContractFunction(
    "convertToAssets", ("uint256",), ("uint256",)
)
VAULT_MAX_WITHDRAW = ContractFunction("maxWithdraw", ("address",), ("uint256",))

APR_ORACLE_STRATEGY_APR = ContractFunction(
    "getStrategyApr", ("address", "int256"), ("uint256",)
)

# ---------------------------------------------------------------------------
# yLiquid market, rate model, position NFT, adapter
# ---------------------------------------------------------------------------

MARKET_AVAILABLE_LIQUIDITY = ContractFunction("availableLiquidity", (), ("uint256",))
MARKET_POSITION_NFT = ContractFunction("POSITION_NFT", (), ("address",))
MARKET_RATE_MODEL = ContractFunction("rateModel", (), ("address",))
MARKET_ADAPTER_RISK_PREMIUM_BPS = ContractFunction(
    "adapterRiskPremiumBps", ("address",), ("uint256",)
)
MARKET_TOTAL_PRINCIPAL_ACTIVE = ContractFunction(
    "totalPrincipalActive", (), ("uint256",)
)
MARKET_POSITIONS = ContractFunction(
    "positions",
    ("uint256",),
    (
        "address",
        "address",
        "address",
        "uint256",
        "uint256",
        "uint256",
        "uint256",
        "uint256",
    ),
)
MARKET_QUOTE_DEBT = ContractFunction("quoteDebt", ("uint256",), ("uint256",))
MARKET_SETTLE_AND_REPAY = ContractFunction(
    "settleAndRepay", ("uint256", "address", "bytes"), ()
)

RATE_MODEL_BASE_RATE_BPS = ContractFunction("baseRateBps", (), ("uint256",))

POSITION_NFT_BALANCE_OF = ERC20_BALANCE_OF
POSITION_NFT_OWNER_OF = ContractFunction("ownerOf", ("uint256",), ("address",))

ADAPTER_POSITION_VIEW = ContractFunction(
    "positionView",
    ("uint256",),
    (
        "(address,address,address,address,uint256,uint256,uint64,uint256,uint8)",
    ),
)

# ---------------------------------------------------------------------------
# Aave V3
# ---------------------------------------------------------------------------

AAVE_POOL_ADDRESSES_PROVIDER = ContractFunction(
    "ADDRESSES_PROVIDER", (), ("address",)
)
AAVE_GET_POOL_DATA_PROVIDER = ContractFunction(
    "getPoolDataProvider", (), ("address",)
)
# (aTokenAddress, stableDebtTokenAddress, variableDebtTokenAddress)
AAVE_GET_RESERVE_TOKENS = ContractFunction(
    "getReserveTokensAddresses", ("address",), ("address", "address", "address")
)

# ---------------------------------------------------------------------------
# Morpho Blue
# ---------------------------------------------------------------------------

MORPHO_IS_AUTHORIZED = ContractFunction(
    "isAuthorized", ("address", "address"), ("bool",)
)
MORPHO_ID_TO_MARKET_PARAMS = ContractFunction(
    "idToMarketParams",
    ("bytes32",),
    ("address", "address", "address", "address", "uint256"),
)
MORPHO_POSITION = ContractFunction(
    "position", ("bytes32", "address"), ("uint256", "uint128", "uint128")
)
MORPHO_MARKET = ContractFunction(
    "market",
    ("bytes32",),
    ("uint128", "uint128", "uint128", "uint128", "uint128", "uint128"),
)

# ---------------------------------------------------------------------------
# Withdrawal queues
# ---------------------------------------------------------------------------

# (amountOfStETH, amountOfShares, owner, timestamp, isFinalized, isClaimed)[]
LIDO_GET_WITHDRAWAL_STATUS = ContractFunction(
    "getWithdrawalStatus",
    ("uint256[]",),
    ("(uint256,uint256,address,uint256,bool,bool)[]",),
)
ETHERFI_IS_FINALIZED = ContractFunction("isFinalized", ("uint256",), ("bool",))
