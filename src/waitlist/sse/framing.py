"""Server-Sent Events wire framing.

An event is two lines, ``event: <type>`` then ``data: <json>``, followed by a
blank line. A heartbeat is a bare comment line, which EventSource listeners
never see but which keeps proxies and the TCP connection alive.
"""

import json
import time

from waitlist.sse.events import NotificationEvent


def format_event(event: NotificationEvent) -> str:
    """Frame an event as an SSE message.

    ``json.dumps`` escapes newlines and non-ASCII, so the data line is always
    a single line.
    """
    data = json.dumps(event.to_dict(), separators=(",", ":"))
    return f"event: {event.type}\ndata: {data}\n\n"


def format_heartbeat(epoch_ms: int | None = None) -> str:
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    return f": heartbeat {epoch_ms}\n\n"
