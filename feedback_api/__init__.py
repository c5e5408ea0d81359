# =============================================================================
# Feedback Ingestion API
# =============================================================================
# Collects end-user feedback (bug, suggestion, praise, other) for companies
# through a public, API-key authenticated endpoint, and serves the account
# and dashboard reads for the company itself.
#
# Package structure:
#   feedback_api/
#   ├── api/          → FastAPI routers (ingestion, account), deps, middleware
#   ├── db/           → Async engine, session, and ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → Credential, tenant and feedback stores, validation,
#                       key generation, identity provider
# =============================================================================
