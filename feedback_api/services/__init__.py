# =============================================================================
# Services Package — Business Logic
# =============================================================================
#   - auth.py: API key generation and bearer header parsing
#   - credentials.py: Credential store (resolve, current key, regenerate)
#   - tenants.py: Tenant store (signup provisioning, rename, delete)
#   - feedback.py: Submission validation and feedback store
#   - identity.py: Identity provider capability (JWT verification)
# =============================================================================
