from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

DISPATCH_DECISIONS = Counter(
    "helium_dispatch_decisions_total",
    "Inbound requests by dispatch route",
    ["route"],  # route: tunnel/channel/application
)

HEARTBEATS = Counter(
    "helium_heartbeats_total",
    "Session heartbeats received",
    ["source"],  # source: http/channel
)

SESSIONS_RECLAIMED = Counter(
    "helium_sessions_reclaimed_total",
    "Expired sessions removed by the reclamation sweep",
)

ACTIVE_SESSIONS = Gauge(
    "helium_active_sessions",
    "Sessions currently held by the session store",
)

ACTIVE_CHANNELS = Gauge(
    "helium_active_channels",
    "Open bidirectional message channels",
)

CHANNEL_MESSAGES = Counter(
    "helium_channel_messages_total",
    "Channel messages handled",
    ["outcome"],  # outcome: ack/error
)

STREAM_EVENTS = Counter(
    "helium_stream_events_total",
    "Server-push stream events emitted",
    ["mode", "type"],  # mode: relay/synthetic, type: live/end/error
)


def generate_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
