"""Claude model call used by the repair loop and the patch generator."""

from typing import Optional

from claude_agent_sdk import (
    ClaudeSDKClient,
    ClaudeAgentOptions,
    AssistantMessage,
    TextBlock,
    ResultMessage,
)

from ..utils.logging import get_logger

logger = get_logger(__name__)

REPAIR_SYSTEM_PROMPT = """You are a senior developer repairing generated JavaScript and TypeScript code.
Reply with the complete corrected file only: no markdown fences, no explanation."""


class ClaudeModelCall:
    """
    Async callable: prompt in, reply text out.

    The repair loop treats the model as a black box with a fixed I/O
    contract; no tools are exposed to it, it only answers with code.
    Returns None when the session fails or yields no text.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        system_prompt: str = REPAIR_SYSTEM_PROMPT,
        max_turns: int = 1,
    ):
        self.model = model
        self.system_prompt = system_prompt
        self.max_turns = max_turns

    def _options(self) -> ClaudeAgentOptions:
        kwargs = {"system_prompt": self.system_prompt, "max_turns": self.max_turns}
        if self.model:
            kwargs["model"] = self.model
        return ClaudeAgentOptions(**kwargs)

    async def __call__(self, prompt: str) -> Optional[str]:
        chunks = []
        try:
            async with ClaudeSDKClient(options=self._options()) as client:
                await client.query(prompt)

                async for message in client.receive_response():
                    if isinstance(message, AssistantMessage):
                        for block in message.content:
                            if isinstance(block, TextBlock):
                                chunks.append(block.text)
                    elif isinstance(message, ResultMessage) and message.is_error:
                        logger.warning(f"Model session ended with an error: {message.result}")
                        return None

        except Exception as e:
            logger.warning(f"Model call failed: {e}")
            return None

        text = "".join(chunks).strip()
        return text or None
