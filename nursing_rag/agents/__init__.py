# =============================================================================
# Agents Package — Tool-Calling Agents & LangGraph Pipeline
# =============================================================================
#   - executor.py: the tool-calling loop (iteration + wall-clock budgets)
#   - tools.py: tool registry and the three retrieval tools
#   - solution.py: RAG answering agent over textbooks and videos
#   - grader.py: difficulty rating (single completion)
#   - tagger.py: subject/topic/category agent over the tags API
#   - validator.py: JSON extraction + schema validation of agent output
#   - orchestrator.py: LangGraph graph, solve → (grade ‖ classify) → assemble
#   - prompts.py: prompt text
# =============================================================================
