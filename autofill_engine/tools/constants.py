"""Constants for field classification and fill planning."""

# Confidence Thresholds (0.0 to 1.0)
CONFIDENCE_THRESHOLD = 0.75       # minimum best-candidate score for auto-fill
STATISTICAL_TRIGGER_SCORE = 0.5   # below this the statistical classifier is consulted
AUTO_ADD_CONFIDENCE_THRESHOLD = 0.6
STATISTICAL_SCORE_FACTOR = 0.8    # statistical confidence is discounted against rule scores
SECTION_ONLY_DISCOUNT = 0.9       # label pattern that matched only the section title

# Batching and Pacing
BATCH_SIZE = 10
CHUNK_COOLDOWN = 0.1     # seconds between classifier chunk requests
RESCAN_DEBOUNCE = 0.3    # seconds
CACHE_TTL = 300          # seconds (300,000 ms)

# Auto-Add Loop
MAX_AUTO_ADD_ITERATIONS = 5
MAX_AUTO_ADD_LABELS = 10

# Output Limits
MAX_RANKED_CANDIDATES = 3
CACHE_KEY_OPTIONS = 5
