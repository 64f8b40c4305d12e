# Constants for the gift recommendation pipeline.

# Heuristic fallback never returns fewer rows than this per pool
HEURISTIC_MIN_LIMIT = 20

# Scoring weights (base score)
WEIGHT_SIMILARITY = 0.25
WEIGHT_QUALITY = 0.35
WEIGHT_RECENCY = 0.25
WEIGHT_POPULARITY = 0.15

# Rerank slice ceiling, whatever top_n the caller asks for
RERANK_MAX_TOP_N = 30

# Retailer bucket for products without one (diversification)
UNKNOWN_RETAILER = "unknown"

# Admission predicate values
STATUS_APPROVED = "APPROVED"
AVAILABILITY_OUT_OF_STOCK = "OUT_OF_STOCK"

# Badges
BADGE_PARTNER = "Partner"
BADGE_PRIME = "Prime"
BADGE_FREE_SHIPPING = "Free Shipping"
BADGE_BEST_SELLER = "Best Seller"

# Session embedding drift on LIKE / SAVE
NUDGE_WEIGHT = 0.2

# Stored product vector kind (vectors.<kind>.vector)
KIND_SIMILAR = "sim"
