"""
Three-stage hierarchical summarization.

Each stage only sees the previous stage's output, so the stages run one
after another: full summary -> distilled summary -> bullet points.
"""

import logging

from services.llm import LlmClient

logger = logging.getLogger(__name__)

FULL_SUMMARY_PROMPT = """Summarize the following content in a clear, comprehensive way. Focus on the key points, main arguments, and important details:

{content}"""

DISTILLED_SUMMARY_PROMPT = """Distill this summary into its core points, organizing them in a clear, hierarchical structure:

{content}"""

BULLET_SUMMARY_PROMPT = """Create a final, concise bullet-point summary that captures the absolute essence. Format as:
• Main point 1
• Main point 2
• Key takeaway

Summary to process:
{content}"""

SUMMARY_STAGES = (FULL_SUMMARY_PROMPT, DISTILLED_SUMMARY_PROMPT, BULLET_SUMMARY_PROMPT)


class HierarchicalSummarizer:
    def __init__(self, llm: LlmClient, max_input_chars: int = 100_000):
        self.llm = llm
        self.max_input_chars = max_input_chars

    async def summarize(self, content: str) -> str:
        """
        Raises:
            ExternalProviderError: If any stage fails
        """
        text = content[:self.max_input_chars]
        for stage, prompt in enumerate(SUMMARY_STAGES, start=1):
            text = await self.llm.generate(prompt.format(content=text))
            logger.debug(f"Summary stage {stage}/{len(SUMMARY_STAGES)} produced {len(text)} characters")
        return text
