"""Infrastructure shared by every bounded context: database engine and LLM client."""
