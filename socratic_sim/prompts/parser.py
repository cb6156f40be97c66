"""
Parser Agent Prompts - Build Phase
Extracts a normalized structure from raw scenario prose.
"""

PARSER_SYSTEM_PROMPT = """You are a business scenario parser. Extract structured information from scenario descriptions. Always respond with valid JSON."""

PARSER_USER_PROMPT = """Extract structured information from this business scenario:

---
{raw_input}
---

Extract the following in JSON format:

{{
  "scenario_type": "<crisis|negotiation|strategy|operations|leadership|other>",
  "industry": "<specific industry or 'general'>",
  "context": {{
    "company_name": "<company name if specified, else 'Not specified'>",
    "situation": "<brief description of the situation>",
    "timeframe": "<time context if specified>",
    "stakes": "<what's at risk or important>"
  }},
  "actors": [
    {{
      "role": "<job title or role>",
      "name": "<name if specified, else role>",
      "description": "<brief description of their position/relevance>"
    }}
  ],
  "constraints": ["<explicit constraints, limitations, or requirements>"],
  "objectives": ["<explicitly stated goals or objectives>"],
  "key_challenges": ["<main problems or challenges identified>"]
}}

IMPORTANT:
- scenario_type should be one of: crisis, negotiation, strategy, operations, leadership, other
- If information is not explicitly stated, use reasonable inference
- actors array should include all named people or roles
- constraints are hard limits (budget, time, regulations, etc.)
- objectives are explicitly stated goals
- key_challenges are problems that need solving

Return ONLY the JSON object, no additional text."""
