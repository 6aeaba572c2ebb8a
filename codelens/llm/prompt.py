"""
codelens/llm/prompt.py
Builds the system and user prompts before each analysis call.
Interpolated at request time, never cached.
"""

from typing import Optional

from ..config import AnalysisMode


DEFAULT_PROMPTS = {
    AnalysisMode.CODE: "Analyze the images and solve the coding problem in them",
    AnalysisMode.GENERAL: "Answer the questions or complete the tasks shown in the images",
}

SYSTEM_PROMPTS = {
    AnalysisMode.CODE: (
        "You are an expert software engineer and code analyst. Always respond "
        "with accurate, detailed code analysis in the requested JSON format."
    ),
    AnalysisMode.GENERAL: (
        "You are an expert problem solver and educator. Always respond with a "
        "precise, well-reasoned answer in the requested JSON format."
    ),
}

_CODE_TEMPLATE = """\
You are an expert software engineer and problem solver. Your primary goal is to extract, analyze, and SOLVE coding problems from screenshots.

Task: {{task}}
{{context_block}}
CRITICAL INSTRUCTIONS - Follow this order:
1. EXTRACT: Transcribe ALL visible code exactly as shown, including comments, variable names, and syntax
2. IDENTIFY: Determine the programming language and any visible problems/requirements
3. SOLVE: If there's a coding problem, interview question, or bug - provide the COMPLETE WORKING SOLUTION
4. ANALYZE: Explain complexity and functionality

Provide your response in this exact JSON format:
{
  "code": "COMPLETE extracted code from image(s) + WORKING SOLUTION if problem exists. Include full implementation, not just snippets.",
  "summary": "What the code does + Problem identified + Solution approach + Key insights for implementation",
  "timeComplexity": "Big O analysis with explanation (e.g., O(n log n) due to sorting algorithm)",
  "spaceComplexity": "Memory usage analysis with explanation (e.g., O(n) for auxiliary array)",
  "language": "Programming language (python, javascript, java, cpp, etc.)"
}

PRIORITY FOCUS:
- If you see a coding interview question -> Provide complete working solution
- If you see buggy code -> Provide fixed version with explanation
- If you see incomplete code -> Provide completed implementation
- Always include FULL working code, not pseudocode or partial solutions\
"""

_GENERAL_TEMPLATE = """\
Review the provided screenshot(s) and deliver a precise response.

Task: {{task}}
{{context_block}}
Your responsibilities:
1. IDENTIFY the questions or tasks in the images.
2. SOLVE them completely and accurately.
3. ANALYZE your approach with clear reasoning.
4. DESIGN a verification test plan that proves the solution is correct.
5. COMMUNICATE using the same natural language used in the questions or text shown.

Respond ONLY in JSON with this exact shape:
{
  "answer": "Complete solution with clear, actionable steps or final answer.",
  "explanation": "Concise analysis covering the key reasoning, methodology, and approach.",
  "test": "Detailed test plan, verification steps, or validation checklist to confirm correctness."
}\
"""

_TEMPLATES = {
    AnalysisMode.CODE: _CODE_TEMPLATE,
    AnalysisMode.GENERAL: _GENERAL_TEMPLATE,
}

_CONTEXT_INSTRUCTIONS = (
    "Incorporate the new screenshots with the previous analysis. If they add "
    "context or correct earlier assumptions, update the analysis accordingly "
    "while keeping what is still relevant."
)


def default_prompt(mode: str) -> str:
    return DEFAULT_PROMPTS[mode]


def build_system_prompt(mode: str) -> str:
    return SYSTEM_PROMPTS[mode]


def build_user_prompt(mode: str, task: str, previous_context: Optional[str] = None) -> str:
    """
    Assemble the user prompt for one analysis call.

    Args:
        mode:             'code' or 'general'.
        task:             The caller's instruction; empty falls back to the
                          mode's default prompt.
        previous_context: Serialized previous result. When present the
                          prompt asks for an incremental update.

    Returns:
        Fully interpolated prompt string.
    """
    task = task.strip() if task and task.strip() else default_prompt(mode)
    if previous_context:
        context_block = f"\nPrevious context: {previous_context}\n{_CONTEXT_INSTRUCTIONS}\n"
    else:
        context_block = ""

    prompt = _TEMPLATES[mode]
    prompt = prompt.replace("{{task}}", task)
    prompt = prompt.replace("{{context_block}}", context_block)
    return prompt
