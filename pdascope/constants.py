"""pdascope constants and defaults."""

# Default Percolator vanity program IDs (not deployed publicly by default).
DEFAULT_ROUTER_ID = "RoutR1VdCpHqj89WEMJhb6TkGT9cPfr1rVjhM3e2YQr"
DEFAULT_SLAB_ID = "SLabZ6PsDLh2X6HzEoqxFDMqCVcJXDKCNEYuPzUvGPk"

# Known programs probed as a cluster sanity check.
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
MEMO_PROGRAM_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"

DEFAULT_RPC_URL = "http://127.0.0.1:8899"
DEFAULT_MARKET = "BTC-PERP"
DEFAULT_NONCE = 1
DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"
DEFAULT_CONCURRENCY = 8
DEFAULT_TIMEOUT = 30.0
DEFAULT_RPC_RETRIES = 3
DEFAULT_COMMITMENT = "confirmed"

CLUSTER_URLS: dict[str, str] = {
    "localnet": "http://127.0.0.1:8899",
    "devnet": "https://api.devnet.solana.com",
    "mainnet": "https://api.mainnet-beta.solana.com",
}

# Ledger limits from solana_program::pubkey.
MAX_SEED_LEN = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"
PUBKEY_BYTES = 32

U64_MAX = 2**64 - 1
