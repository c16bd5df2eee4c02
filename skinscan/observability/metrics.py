from prometheus_client import Counter, Histogram

# -------------------------
# HTTP metrics
# -------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["path", "method", "status"],
)

# -------------------------
# Model cascade metrics
# -------------------------

CASCADE_ATTEMPTS_TOTAL = Counter(
    "cascade_attempts_total",
    "Model attempts made by the inference cascade",
    ["model", "outcome"],
)

CASCADE_ATTEMPT_SECONDS = Histogram(
    "cascade_attempt_seconds",
    "Latency of a single model attempt in seconds",
    ["model"],
)

# -------------------------
# Analysis service metrics
# -------------------------

ANALYSIS_REQUESTS_TOTAL = Counter(
    "analysis_requests_total",
    "Total analysis operations",
    ["operation", "result"],
)

ANALYSIS_SECONDS = Histogram(
    "analysis_seconds",
    "End-to-end analysis latency in seconds (preprocess + cascade + normalize)",
    ["operation"],
)
