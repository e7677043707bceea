"""
Typed prompt templates for the AI-backed trip extractor.

Prompts are structured as Pydantic models for validation and testability.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ExtractionPromptConfig(BaseModel):
    """
    Inputs needed to build the extraction user prompt.

    The classification fields tell the model how the input was routed;
    context is the serialized conversation context, if any.
    """

    text: str = Field(description="Raw user input")
    input_type: str = Field(description="Classification type")
    complexity: str = Field(description="Classification complexity")
    features: List[str] = Field(default_factory=list, description="Active classifier signals")
    context: Optional[str] = Field(default=None, description="Serialized conversation context")

    def format_prompt(self, template: str) -> str:
        return template.format(
            text=self.text,
            input_type=self.input_type,
            complexity=self.complexity,
            features=", ".join(self.features) if self.features else "none",
            context=self.context or "No previous conversation.",
        )


# =============================================================================
# System Prompt
# =============================================================================

EXTRACTION_SYSTEM_PROMPT = """You are a travel request parser. Convert the user's message into a structured trip request.

Rules:
1. List destinations as individual cities in the order the user will visit them.
2. Every destination needs a positive whole number of days. If the user gives a total for several cities without per-city counts, split it evenly and give any remaining days to the earliest cities.
3. Explicit per-city day counts always win over a vaguer total.
4. "origin" is the city the user departs from. Use null if it is not stated and not known from context.
5. Resolve references like "there", "that city" or "the last one" using the conversation context.
6. Do not invent destinations for vague regions such as "Europe" or "Asia". Return an empty list and ask which cities instead.
7. "preferences" are short lowercase tags such as "romantic", "budget-friendly", "beach", "cultural", "foodie".
8. "confidence" is your confidence from 0.0 to 1.0 that the structure reflects what the user asked.

Respond with a single JSON object and nothing else:
{
  "origin": string or null,
  "destinations": [{"city": string, "days": integer}],
  "total_days": integer,
  "preferences": [string],
  "confidence": number,
  "requires_clarification": boolean,
  "clarification_questions": [string],
  "error": string or null
}
"""

# =============================================================================
# User Prompt
# =============================================================================

EXTRACTION_USER_PROMPT_TEMPLATE = """Conversation context:
{context}

Input classification: {input_type} (complexity: {complexity})
Signals: {features}

User message:
\"\"\"{text}\"\"\"
"""
