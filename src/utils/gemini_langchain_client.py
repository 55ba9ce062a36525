"""Gemini client using LangChain."""

import logging
from typing import Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

logger = logging.getLogger(__name__)


class GeminiLangChainClient:
    """Wrapper for Google Gemini API using LangChain."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.0-flash-exp",
        system_instruction: Optional[str] = None,
        temperature: float = 0.4,
    ) -> None:
        """
        Initialize Gemini client with LangChain.

        Args:
            api_key: Google Gemini API key
            model_name: Model to use (default: gemini-2.0-flash-exp)
            system_instruction: Default system instruction
            temperature: Sampling temperature
        """
        self.model_name = model_name
        self.system_instruction = system_instruction or ""
        self.llm = ChatGoogleGenerativeAI(
            model=model_name,
            google_api_key=api_key,
            temperature=temperature,
            max_output_tokens=2048,
        )
        logger.info(f"Initialized Gemini LangChain client for {model_name}")

    def generate(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        """
        Single-turn generation.

        Args:
            prompt: User prompt
            system_instruction: Overrides the default system instruction

        Returns:
            AI response text
        """
        messages = []
        instruction = system_instruction or self.system_instruction
        if instruction:
            messages.append(SystemMessage(content=instruction))
        messages.append(HumanMessage(content=prompt))

        logger.info(f"Sending prompt of {len(prompt)} characters to {self.model_name}")
        response = self.llm.invoke(messages)
        return response.content
