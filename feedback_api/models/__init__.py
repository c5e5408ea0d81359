# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the API, separate from the ORM models in
# feedback_api/db/models.py so internal columns never leak into responses.
# =============================================================================
