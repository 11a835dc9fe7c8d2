"""Instruction prompts and output schemas for structured paper extraction.

Two prompt shapes are built here:

* ``build_document_prompt`` accompanies the raw PDF sent to a native
  multimodal provider, which enforces ``RESPONSE_SCHEMA`` itself.
* ``build_text_prompt`` embeds the extracted paper text for chat providers,
  which cannot enforce a schema, so the prompt spells it out as JSON.
"""

SYSTEM_PROMPT = "You are a helpful academic assistant that outputs strict JSON."

_SECTION_GUIDE = """\
Follow this structure exactly:
- Basic Info: Title, Year, First Author, Journal/Conf, Vol/Issue, Keywords (English).
1. Research Question & Hypothesis: Core scientific problem and hypothesis.
2. Research Design: Overall thought process. (If Review: Main framework).
3. Methods & Tech: Data source, sample size, algorithms, platforms. (If Review: Details of review method).
4. Analysis Process: Steps, stats methods, validation.
5. Results: Key findings, quantitative indicators, qualitative conclusions.
6. Conclusion: Final conclusion based on evidence.
7. Evaluation: Contribution to field, rigor, logic.
8. Limitations & Inspiration: Doubts, limitations, new ideas.
9. Figures & Tables: List number, title, and summary.
10. References: Pick 1-2 most important references in format: Author, Year, Title, Journal, Vol, Page."""

JSON_SCHEMA_PROMPT = """\
Respond with a valid JSON object strictly matching this schema:
{
  "basicInfo": {
    "title": "string",
    "year": "string",
    "firstAuthor": "string",
    "journal": "string",
    "volumeIssue": "string",
    "keywords": "string (English, comma separated)"
  },
  "researchQuestion": "string (Research question and hypothesis)",
  "researchDesign": "string (Overall research design or Review framework)",
  "methods": "string (Methods, data, techniques)",
  "analysisProcess": "string (Step by step analysis)",
  "results": "string (Key findings)",
  "conclusion": "string (Final conclusion)",
  "evaluation": "string (Contribution, rigor, logic)",
  "limitations": "string (Limitations and inspirations)",
  "figuresTables": [
    { "number": "string", "title": "string", "content": "string" }
  ],
  "keyReferences": ["string"],
  "isReview": boolean
}"""


def _string(description: str | None = None) -> dict:
    schema: dict = {"type": "STRING"}
    if description:
        schema["description"] = description
    return schema


#: Output schema in the OpenAPI subset accepted by Gemini's ``responseSchema``.
RESPONSE_SCHEMA: dict = {
    "type": "OBJECT",
    "properties": {
        "basicInfo": {
            "type": "OBJECT",
            "properties": {
                "title": _string(),
                "year": _string(),
                "firstAuthor": _string(),
                "journal": _string(),
                "volumeIssue": _string(),
                "keywords": _string("English keywords comma separated"),
            },
            "required": [
                "title",
                "year",
                "firstAuthor",
                "journal",
                "volumeIssue",
                "keywords",
            ],
        },
        "researchQuestion": _string("Research question and hypothesis"),
        "researchDesign": _string("Overall research design or Review framework"),
        "methods": _string("Methods, data, techniques"),
        "analysisProcess": _string("Step by step analysis or logic flow"),
        "results": _string("Key findings, quantitative and qualitative"),
        "conclusion": _string("Final conclusions based on evidence"),
        "evaluation": _string("Contribution, rigor, logic evaluation"),
        "limitations": _string("Limitations and future inspirations"),
        "figuresTables": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "number": _string("e.g., Fig 1"),
                    "title": _string(),
                    "content": _string("Core content summary"),
                },
                "required": ["number", "title", "content"],
            },
        },
        "keyReferences": {
            "type": "ARRAY",
            "items": _string(),
            "description": (
                "1-2 most representative references "
                "(Author, Year, Title, Journal...)"
            ),
        },
        "isReview": {
            "type": "BOOLEAN",
            "description": "True if the paper is a review/survey article",
        },
    },
    "required": [
        "basicInfo",
        "researchQuestion",
        "researchDesign",
        "methods",
        "analysisProcess",
        "results",
        "conclusion",
        "evaluation",
        "limitations",
        "figuresTables",
        "keyReferences",
        "isReview",
    ],
}


def build_document_prompt(response_language: str) -> str:
    """Instruction text sent next to the inline PDF."""
    return f"""\
Analyze the attached academic paper. You are an expert researcher.
Extract and summarize the information strictly based on the file content. DO NOT hallucinate.

Respond in {response_language} for the content fields, but keep keywords in English as requested.

{_SECTION_GUIDE}"""


def build_text_prompt(paper_text: str, response_language: str, max_chars: int) -> str:
    """Build the user prompt for an OpenAI-compatible chat provider.

    Only the first ``max_chars`` characters of ``paper_text`` are embedded;
    the prompt tells the model the text may have been cut.

    Args:
        paper_text:        Page-marked text from ``parser.extract_text``.
        response_language: Language for the narrative fields.
        max_chars:         Head-cut budget for ``paper_text``.
    """
    return f"""\
Analyze the following academic paper text. You are an expert researcher.
Extract and summarize the information strictly based on the text provided.

Respond in {response_language} for the content fields, but keep keywords in English.

{_SECTION_GUIDE}

{JSON_SCHEMA_PROMPT}

--- PAPER TEXT BEGINS ---
{paper_text[:max_chars]}
--- PAPER TEXT ENDS ---
(Note: Text might be truncated if too long.)"""
