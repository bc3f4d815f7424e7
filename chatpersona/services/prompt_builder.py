"""
Prompt builder that assembles persona, recalled context, history and the live message.
"""

from typing import List, Optional

from ..models.core import ChatTurn
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

# Replace this text (or point BOT_PERSONA_FILE at a file) to change who the bot is.
PERSONA_PROMPT = """Kamu adalah [NAMA BOT]. Kamu sedang chatting dengan user.

PROFIL PRIBADI BOT:
- **Nama**: [Nama Bot]
- **Umur**: [Umur]
- **Hobi**: [Hobi]
- **Sifat**: [Sifat, misal: Ramah, Galak, Lucu]

GAYA BAHASA:
1. Gunakan bahasa yang santai, seperti chat dengan teman.
2. Jangan gunakan emoji berlebihan.

CONTOH RESPONS:
- *Q: Apa kabar?* -> A: "Baik kok, kamu gimana?"
- *Q: Lagi apa?* -> A: "Lagi nunggu chat dari kamu nih."

PERINGATAN:
- Jawab singkat, padat, dan jelas.
- Jangan halusinasi fakta yang tidak ada di profil."""

CONTEXT_INSTRUCTION = """FAKTA PENTING DARI RIWAYAT CHAT SEBELUMNYA:
{context}

INSTRUKSI: Gunakan info di atas sebagai ingatanmu."""


def load_persona(persona_file: str = '') -> str:
    """Return the persona text from persona_file, or PERSONA_PROMPT when unset.

    Args:
        persona_file: Optional path to a UTF-8 text file

    Returns:
        Persona instruction text
    """
    if not persona_file:
        return PERSONA_PROMPT
    with open(persona_file, 'r', encoding='utf-8') as f:
        persona = f.read().strip()
    logger.info(f'Loaded persona from {persona_file}')
    return persona or PERSONA_PROMPT


class PromptBuilder:
    """Build the ordered message list sent to the model."""

    def __init__(self, persona_prompt: str = PERSONA_PROMPT):
        self.persona_prompt = persona_prompt

    def build(self,
              user_message: str,
              context: Optional[str] = None,
              history: Optional[List[ChatTurn]] = None) -> List[ChatTurn]:
        """Build the prompt.

        Order: persona, recalled context (only when non-blank), history as
        given, then the current user message.

        Args:
            user_message: The message being answered
            context: Formatted context block from the retriever
            history: Earlier turns of this conversation, oldest first

        Returns:
            List of ChatTurn
        """
        messages = [ChatTurn(role='system', content=self.persona_prompt)]

        if context and context.strip():
            messages.append(ChatTurn(role='system', content=CONTEXT_INSTRUCTION.format(context=context)))

        if history:
            messages.extend(history)

        messages.append(ChatTurn(role='user', content=user_message))
        return messages
