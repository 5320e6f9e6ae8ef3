# ============================================================================
# netbridge/__init__.py
# Package Marker for the Desktop Networking Backend
# ============================================================================
#
# PURPOSE:
# The frontend runs in a sandboxed webview that cannot make arbitrary
# cross-origin requests or touch the filesystem. Everything in this package
# does that work on its behalf:
#   - net/     relays HTTP requests, uploads and downloads files
#   - files/   serves one local file over loopback, wipes the scratch dir
#   - server/  the FastAPI command surface the frontend talks to
#
# ============================================================================

__version__ = "1.0.0"
