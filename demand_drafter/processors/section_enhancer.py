"""
Section Enhancer
Rewrites one demand letter section following the user's instruction.
"""

import logging
from typing import Dict

from ..errors import InputError
from ..utils.model_client import ModelClient

logger = logging.getLogger(__name__)


class SectionEnhancer:

    def __init__(self, client: ModelClient):
        self.client = client

    @staticmethod
    def build_prompt(section_content: str, instruction: str, section_type: str) -> str:
        return f"""You are a legal writing assistant specialized in demand letters. Your task is to enhance legal content based on user instructions while maintaining professional tone and legal accuracy.

Instructions:
- Maintain the format, spacing, and structure of the original content
- Keep the content legally sound and professional
- Maintain factual accuracy from the original content
- Follow the user's specific enhancement request
- Return only the enhanced content without explanations
- Preserve important legal details and monetary amounts
- Use proper legal terminology

Please enhance the following {section_type} section of a demand letter based on this instruction: "{instruction}"

Original content:
{section_content}

Enhanced content:"""

    def enhance(self, section_content: str, instruction: str, section_type: str = 'letter') -> Dict:
        if not (section_content or '').strip() or not (instruction or '').strip():
            raise InputError('Missing section content or enhancement prompt')

        enhanced = self.client.generate(
            self.build_prompt(section_content, instruction.strip(), section_type or 'letter'),
            description=f"enhancement of {section_type or 'letter'} section",
        ).strip()
        logger.info(f"Enhanced {section_type} section ({len(section_content)} -> {len(enhanced)} chars)")

        return {
            'success': True,
            'enhancedContent': enhanced,
            'originalContent': section_content,
            'prompt': instruction,
        }
