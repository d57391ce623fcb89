# bug_reporter/metrics.py
from prometheus_client import Counter, Histogram, CollectorRegistry

# Dedicated registry (reload, multiple imports)
REGISTRY = CollectorRegistry(auto_describe=True)

LLM_REQUESTS = Counter(
    "llm_requests_total",
    "Number of LLM requests",
    ["outcome"],
    registry=REGISTRY,
)

LLM_LATENCY = Histogram(
    "llm_latency_seconds",
    "Latency of LLM requests in seconds",
    registry=REGISTRY,
)

REPORT_BATCHES = Counter(
    "report_batches_total",
    "Number of report batches submitted",
    ["outcome"],
    registry=REGISTRY,
)

TRACKER_SUBMISSIONS = Counter(
    "tracker_submissions_total",
    "Number of issue tracker submissions",
    ["outcome"],
    registry=REGISTRY,
)
