"""Prometheus metrics for the thesis workflow."""

from prometheus_client import Counter, Histogram

transitions_total = Counter(
    "thesisflow_transitions_total",
    "Accepted thesis status transitions (self-transitions included)",
    ["from_status", "to_status"]
)

operations_rejected_total = Counter(
    "thesisflow_operations_rejected_total",
    "Workflow operations rejected with a domain error",
    ["operation", "error"]  # error: not_found|invalid_transition|permission_denied|...
)

documents_bound_total = Counter(
    "thesisflow_documents_bound_total",
    "Document references bound to theses"
)

theses_created_total = Counter(
    "thesisflow_theses_created_total",
    "Theses created"
)

document_upload_bytes = Histogram(
    "thesisflow_document_upload_bytes",
    "Size of uploaded thesis documents in bytes",
    buckets=[64 * 1024, 256 * 1024, 1024 * 1024, 4 * 1024 * 1024, 10 * 1024 * 1024]
)
