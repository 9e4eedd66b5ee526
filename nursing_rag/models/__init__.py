# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request bodies, agent output schemas and API responses. Agent output
# schemas double as validators for the JSON the LLM writes.
# =============================================================================
