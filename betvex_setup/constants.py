NETWORK_ID = "testnet"
DEFAULT_RPC_ENDPOINT = "https://test.rpc.fastnear.com"
TIMEOUT = 30  # seconds, per JSON-RPC view request

#: Contract account ids used on testnet.
NETWORK_ROOT_ACCOUNT = "testnet"
BETTING_CONTRACT = "vex-contract-12.testnet"
USDC_CONTRACT = "usdc.betvex.testnet"
VEX_CONTRACT = "token.betvex.testnet"

ONE_YOCTO = 1
ONE_NEAR = 10 ** 24
ONE_USDC = 10 ** 6  # 6 decimals
ONE_VEX = 10 ** 18  # 18 decimals
GAS_300_TGAS = 300 * 10 ** 12

ACCOUNT_CREATION_DEPOSIT = ONE_NEAR // 2  # := 0.5 NEAR
ACCOUNT_NEAR_FUNDING = ONE_NEAR // 2  # := 0.5 NEAR
STORAGE_DEPOSIT = 1_250_000_000_000_000_000_000  # := 0.00125 NEAR
ACCOUNT_USDC_FUNDING = 1_000  # USDC per bettor account

MAIN_ACCOUNT_USDC_MIN = 10_000  # USDC
MAIN_ACCOUNT_VEX_MIN = 100_000  # VEX
MAIN_ACCOUNT_NEAR_MIN = 5  # NEAR
STAKE_AMOUNT = 100_000  # VEX

DEFAULT_KEY_COUNT = 10
DEFAULT_ACCOUNT_COUNT = 10
ACCOUNT_ID_PREFIX = "user"

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0  # seconds

# Pacing between remote calls, in seconds. The remote RPC is rate limited,
# these values are known to work against the public testnet endpoint.
MATCH_BATCH_SIZE = 10
MATCH_BATCH_DELAY = 2.0
BET_DELAY = 0.5
END_BETTING_DELAY = 1.0
LIFECYCLE_WAVE_DELAY = 10.0
CANCEL_DELAY = 1.0
FINISH_DELAY = 5.0
CLAIM_DELAY = 2.0

MIN_BETS_PER_ACCOUNT = 8
MAX_BETS_PER_ACCOUNT = 12
MAX_BET_AMOUNT = 100  # USDC
ACCOUNT_BET_CEILING = 1_000  # USDC
FINISHED_MATCH_BIAS = 0.9
WINNER_BIAS = 0.8

END_BETTING_COUNT = 6
FINISH_COUNT = 4
CANCEL_COUNT = 2

TEAM_1 = "Team1"
TEAM_2 = "Team2"
TEAMS = (TEAM_1, TEAM_2)

PRINCIPAL_MAIN = "main"
PRINCIPAL_ADMIN = "admin"

LOG_DIR_NAME = "logs"
