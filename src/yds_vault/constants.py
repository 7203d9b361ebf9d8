"""Chain, contract and policy constants."""

from typing import TypedDict


class ContractAddresses(TypedDict):
    USDC_MOCK: str
    YDS_VAULT: str
    DONATION_ROUTER: str
    AAVE_ADAPTER: str
    MOCK_YIELD_ADAPTER: str


class DonationRecipient(TypedDict):
    name: str
    address: str
    bps: int


LOCAL_CHAIN_ID = 31337  # Anvil/Hardhat default
LOCAL_RPC_URL = "http://127.0.0.1:8545"

ASSET_DECIMALS = 6  # USDC mock
SHARE_DECIMALS = 18  # vault shares
PRICE_DECIMALS = 4

# Ratios above this are treated as implausible rather than as a real price
SHARE_PRICE_CEILING = 1_000_000

# Default deployment addresses produced by the local deploy script
LOCALHOST_CONTRACTS: ContractAddresses = {
    "USDC_MOCK": "0x5FbDB2315678afecb367f032d93F642f64180aa3",
    "YDS_VAULT": "0xCf7Ed3AccA5a467e9e704C703E8D87F634fB0Fc9",
    "DONATION_ROUTER": "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0",
    "AAVE_ADAPTER": "0xDc64a140Aa3E981100a9becA4E685f962f0cF6C9",
    "MOCK_YIELD_ADAPTER": "0xDc64a140Aa3E981100a9becA4E685f962f0cF6C9",
}

DONATION_RECIPIENTS: list[DonationRecipient] = [
    {
        "name": "Public Goods #1",
        "address": "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
        "bps": 7_000,
    },
    {
        "name": "Public Goods #2",
        "address": "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
        "bps": 3_000,
    },
]

NETWORK_NAMES: dict[int, str] = {
    1: "Ethereum Mainnet",
    5: "Goerli Testnet",
    137: "Polygon Mainnet",
    LOCAL_CHAIN_ID: f"Local Anvil (Chain {LOCAL_CHAIN_ID})",
}

# Explicit gas limits for calls the node tends to under-estimate
MINT_GAS_LIMIT = 100_000
SIMULATE_YIELD_GAS_LIMIT = 150_000

SIMULATED_YIELD_BPS = 1_000  # 10% of the base amount

# Timing policies (seconds)
POLL_INTERVAL = 3.0
RECONCILE_OFFSETS = (0.5, 2.5)
APPROVE_SETTLE_DELAY = 1.5
DEPOSIT_CLEAR_DELAY = 2.0
NETWORK_SWITCH_DELAY = 1.0
TERMINAL_GRACE_PERIOD = 5.0
PROBE_INTERVAL = 10.0
PROBE_FAILURE_THRESHOLD = 3
RECEIPT_TIMEOUT = 120.0
RECEIPT_POLL_LATENCY = 0.5
RPC_TIMEOUT = 10.0


def network_name(chain_id: int | None) -> str:
    """Human readable name for a chain id."""
    if chain_id is None:
        return "Unknown"
    return NETWORK_NAMES.get(chain_id, f"Chain {chain_id}")
