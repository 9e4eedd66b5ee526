# =============================================================================
# Services Package — External Collaborators & Plumbing
# =============================================================================
#   - llm.py: multi-provider chat with tool calling (OpenAI-compatible, Anthropic)
#   - embedder.py: query embeddings at 3072 and 1536 dimensions
#   - embedding_cache.py: per-request id → vector arena
#   - vectorstore.py: textbook and video similarity search (pgvector)
#   - retry.py: exponential backoff with jitter, timeouts
#   - taxonomy.py: classification tags API client (httpx)
# =============================================================================
