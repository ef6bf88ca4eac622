"""Editor LLM request orchestration core."""
