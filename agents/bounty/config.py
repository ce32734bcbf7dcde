from shared.config import settings

AGENT_NAME = "bounty"

# Reconciliation loop
POLL_INTERVAL = settings.POLL_INTERVAL_SECONDS    # Check for new claims every 15s
CLAIM_EVENT = "ClaimCreated"

# Judging
ACCEPT_THRESHOLD = settings.ACCEPT_THRESHOLD
SCORE_MIN = 1
SCORE_MAX = 10

# Issuance
DAILY_BOUNTY_HOUR = settings.DAILY_BOUNTY_HOUR    # UTC
RECENT_TITLES_LIMIT = 100          # Negative examples handed to the generator
ORPHAN_SCAN_DEPTH = 25             # Recent on-chain bounties checked before submitting
RETRY_WINDOW_HOURS = 6             # An unconfirmed creation younger than this is still today's attempt

# Read API
BOUNTY_WINDOW_HOURS = 24           # A bounty is "current" for one day
PREVIOUS_BOUNTIES_LIMIT = 5
ACCEPTED_EVENT_LOOKBACK = 10_000   # Blocks searched for ClaimAccepted
