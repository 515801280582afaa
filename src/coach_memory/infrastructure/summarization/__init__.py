from .openai_chat import OpenAISummarizationService, build_system_prompt

__all__ = ["OpenAISummarizationService", "build_system_prompt"]
