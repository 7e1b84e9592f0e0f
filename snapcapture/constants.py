"""Message types, bridge names and user-facing texts."""

# ── Page → orchestrator ──────────────────────────────────────────────────────

PAGE_ACTIVATE = "PAGE_ACTIVATE"

# ── UI → orchestrator ────────────────────────────────────────────────────────

UI_READY = "UI_READY"
UI_SAVE = "UI_SAVE"
UI_CANCEL = "UI_CANCEL"

# ── Orchestrator → UI ────────────────────────────────────────────────────────

SHOW_UI = "SHOW_UI"
HIDE_UI = "HIDE_UI"  # also sent by the UI's close button
SHOW_ERROR = "SHOW_ERROR"

# ── Allow-list ───────────────────────────────────────────────────────────────

ALLOW_ALL = "<all_urls>"
ALLOWED_SCHEMES = ("http", "https")

# ── Bridge script names (window globals and window.postMessage types) ───────

BINDING_NAME = "__snapcaptureSend"
RECEIVER_NAME = "__snapcaptureReceive"
PAGE_QUERY_TYPE = "SNAPCAPTURE_QUERY"
PAGE_ACTIVE_TYPE = "SNAPCAPTURE_ACTIVE"
PAGE_ACTIVATE_TYPE = "SNAPCAPTURE_ACTIVATE"

# ── Texts ────────────────────────────────────────────────────────────────────

SELECTION_PROMPT = "Select an area"
UNKNOWN_ERROR = "Unknown error"

UPLOAD_CONTENT_TYPE = "image/png"
