from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./bounties.db"

    # Blockchain (Degen chain)
    RPC_URL: str = "https://rpc.degen.tips"
    CHAIN_ID: int = 666666666
    PRIVATE_KEY: str = ""
    RPC_TIMEOUT: int = 15              # seconds per JSON-RPC request
    TX_CONFIRM_TIMEOUT: int = 180      # seconds to wait for a receipt

    # Contract addresses
    BOUNTY_CONTRACT_ADDRESS: str = "0x2445BfFc6aB9EEc6C562f8D7EE325CddF1780814"
    CLAIM_NFT_ADDRESS: str = "0xDdfb1A53E7b73Dba09f79FCA24765C593D447a80"

    # Bounty economics
    BOUNTY_AMOUNT: str = "0.001"       # ether units, staked per bounty
    BOUNTY_CURRENCY: str = "DEGEN"
    BOUNTY_URL_TEMPLATE: str = "https://poidh.xyz/degen/bounty/{bounty_id}"

    # Evidence
    IPFS_GATEWAY: str = "https://ipfs.io/ipfs/"
    HTTP_TIMEOUT: int = 20

    # APIs
    ANTHROPIC_API_KEY: str = ""
    SCORING_MODEL: str = "claude-sonnet-4-20250514"
    GENERATION_MODEL: str = "claude-sonnet-4-20250514"

    # Judging
    ACCEPT_THRESHOLD: int = 7          # 1-10; 9 is the strict variant

    # Scheduling
    POLL_INTERVAL_SECONDS: int = 15
    DAILY_BOUNTY_HOUR: int = 12        # UTC

    # Application
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    PORT: int = 3001

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
