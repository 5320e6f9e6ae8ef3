# ============================================================================
# netbridge/server/__init__.py
# Server Package - FastAPI Command Surface
# ============================================================================
#
# The desktop shell (Tauri webview) <- HTTP -> FastAPI <- -> netbridge.net / netbridge.files
#
# ============================================================================
