# =============================================================================
# Database Package
# =============================================================================
# Async SQLAlchemy engine with a bounded, self-recycling pool, plus the ORM
# mapping of the video index. The service never writes.
# =============================================================================
