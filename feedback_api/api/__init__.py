# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
#   - feedbacks.py: Public ingestion endpoint (POST /feedbacks)
#   - account.py: Tenant profile, API key management, dashboard reads
#   - deps.py: Store and caller-identity dependencies
#   - middleware.py: Open CORS and request logging
# =============================================================================
