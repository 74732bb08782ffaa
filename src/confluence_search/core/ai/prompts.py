"""Prompt templates for summaries and follow-up questions."""

from confluence_search.models.cache import Message
from confluence_search.models.result import Result

SUMMARY_SYSTEM_PROMPT = """\
You are a technical summarizer. Your task is to generate a concise, relevance-focused HTML \
summary of Confluence content. This will help users assess whether a document is worth opening.
You are given:
- Title
- Raw HTML body (Confluence storage format)
- Type: "page", "blogpost", "comment", or "attachment"
- Space name (if available)
- Parent title (if available)
- Optional user prompt (important!)

Output only valid, clean and nicely formatted HTML (no Markdown or code blocks).
Use this format unless the user prompt requests otherwise:

1. <h3>What is this [content type] about?</h3> followed by a paragraph summarizing the content,
   with context, e.g. "This page, from the <b>[space]</b> space, covers...".
2. <h3>Main points</h3> followed by a <ul><li> list.
3. Keep the tone concise, neutral, and useful.

Avoid repeating the title. Omit internal field names or Confluence-specific terms.
If a user prompt is provided, it must be addressed in the summary.
"""

QA_SYSTEM_PROMPT = """\
You are a helpful AI assistant answering follow-up questions about a Confluence document and \
its summary. Respond clearly and accurately. Avoid reiterating the full summary format.
Answer as a helpful peer who understands the document's purpose and key details.
Output only valid, clean and nicely formatted HTML (no Markdown or code blocks).
"""


def build_user_prompt(result: Result, body: str, *, custom_prompt: str = "") -> str:
    """Describe one content item for the summarizer."""
    parent = result.ancestors[-1].title if result.ancestors else "N/A"
    details = "\n".join(
        [
            "--- Content Details ---",
            f"Title: {result.title}",
            f"Contributor: {result.creator.display_name if result.creator else 'Unknown'}",
            f"Created: {result.created_at.isoformat() if result.created_at else 'N/A'}",
            f"Modified: {result.modified_at.isoformat() if result.modified_at else 'N/A'}",
            f"Type: {result.type}",
            f"Space: {result.space.name if result.space else 'N/A'}",
            f"Space URL: {result.space.url if result.space else 'N/A'}",
            f"Parent Title: {parent}",
            f"URL: {result.url}",
            f"Content (HTML): {body}",
        ]
    )
    custom_prompt = custom_prompt.strip()
    return f"{custom_prompt}\n\n{details}" if custom_prompt else details


def build_seed(user_prompt: str, summary: str) -> list[Message]:
    """The three fixed opening turns of every follow-up conversation."""
    return [
        Message(role="system", content=QA_SYSTEM_PROMPT),
        Message(role="user", content=user_prompt),
        Message(role="assistant", content=summary),
    ]
