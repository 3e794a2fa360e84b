"""Prometheus counters for token issuance and verification."""

from prometheus_client import Counter

TOKENS_ISSUED = Counter(
    "gainz_tokens_issued_total",
    "Signed tokens issued",
    ["type"],
)

TOKEN_VERIFICATION_FAILURES = Counter(
    "gainz_token_verification_failures_total",
    "Rejected tokens by failure reason",
    ["reason"],
)
