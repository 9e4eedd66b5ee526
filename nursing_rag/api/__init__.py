# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - solutions.py: solution generation and echo endpoints
# =============================================================================
