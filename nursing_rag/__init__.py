# =============================================================================
# Nursing Exam Solution Service
# =============================================================================
# Answers multiple-choice nursing exam questions with a tool-calling LLM
# agent that retrieves evidence from a textbook and video-lecture knowledge
# base, then grades difficulty and tags subject/topic/category.
#
# Package structure:
#   nursing_rag/
#   ├── api/          → FastAPI route handlers (solution generation)
#   ├── agents/       → Tool-calling agent loop, retrieval tools, solution
#   │                    generator, grader, tagger, LangGraph pipeline
#   ├── db/           → Async engine, connection pool, ORM models
#   ├── models/       → Pydantic V2 request/response/output schemas
#   └── services/     → Embeddings, LLM providers, vector stores, retry,
#                        embedding cache, taxonomy API client
# =============================================================================
