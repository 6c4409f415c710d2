"""
Prometheus metrics for the recording QA workflow.
"""

from prometheus_client import Counter


# ── Uploads ──────────────────────────────────────────────────
blobs_received_total = Counter(
    "blobs_received_total",
    "Uploaded blobs accepted for pairing",
    ["kind"],
)

blobs_rejected_total = Counter(
    "blobs_rejected_total",
    "Uploaded blobs dropped for an unsupported extension",
)

file_records_created_total = Counter(
    "file_records_created_total",
    "File records persisted from upload batches",
    ["shape"],
)

duplicates_skipped_total = Counter(
    "duplicates_skipped_total",
    "Pairs skipped because the owner already has that base name",
)

upload_batches_failed_total = Counter(
    "upload_batches_failed_total",
    "Upload batches aborted by a storage failure",
)

# ── Assignment & Review ──────────────────────────────────────
assignments_total = Counter(
    "assignments_total",
    "Assignments created or reassigned",
    ["mode", "team_tag"],
)

reviews_submitted_total = Counter(
    "reviews_submitted_total",
    "Reviews submitted by QA reviewers",
    ["status", "team_tag"],
)

# ── Blob Store ───────────────────────────────────────────────
blob_store_failures_total = Counter(
    "blob_store_failures_total",
    "Failed blob store operations",
    ["operation"],
)
