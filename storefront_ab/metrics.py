"""Prometheus counters shared by the gate, the router and the relay endpoint"""

from prometheus_client import Counter

VARIANT_ASSIGNMENTS = Counter(
    'ab_variant_assignments_total',
    'Experiment arms assigned to new visitors',
    ['variant']
)

GATE_FAIL_OPEN = Counter(
    'ab_gate_fail_open_total',
    'Requests served with the default arm because the entropy source failed'
)

RELAY_EVENTS = Counter(
    'relay_events_total',
    'Events received by the relay ingestion endpoint',
    ['status']
)

FPID_ISSUED = Counter(
    'relay_fpid_issued_total',
    'Durable first-party identifiers issued'
)

DISPATCHED_EVENTS = Counter(
    'dispatch_events_total',
    'Envelopes handed to a delivery channel',
    ['channel', 'status']
)
