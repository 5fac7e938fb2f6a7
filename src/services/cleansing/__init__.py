"""Text cleansing: rule-based cleanser, LLM decorator and selection service."""

from src.services.cleansing.basic_cleanser import BasicTextCleanser
from src.services.cleansing.cleansing_service import CleansingService
from src.services.cleansing.llm_cleanser import LLMTextCleanser

__all__ = ["BasicTextCleanser", "CleansingService", "LLMTextCleanser"]
