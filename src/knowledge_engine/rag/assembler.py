"""Context assembly: turn ranked fragments into the prompt for answer synthesis.

Fragments appear in similarity-rank order (not document order). Each one is
labelled with its chunk number, source path and fragment id so the model
can attribute what it uses.
"""

from __future__ import annotations

from collections.abc import Sequence

from knowledge_engine.rag.retriever import ScoredFragment

SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Answer the user's question based *only* on "
    "the context provided. When you use information from a chunk, cite it as "
    "[chunk N]. If the context does not contain the answer, state that you "
    "cannot answer from the given information."
)

_SEPARATOR = "\n---\n"


def build_context(fragments: Sequence[ScoredFragment]) -> str:
    """Concatenate *fragments* into a labelled context block."""
    blocks = []
    for n, scored in enumerate(fragments, start=1):
        f = scored.fragment
        header = f"[chunk {n}] (source: {f.path}, fragment {f.id})"
        blocks.append(f"{header}\n{f.text.strip()}")
    return _SEPARATOR.join(blocks)


def build_messages(question: str, context: str) -> list[dict[str, str]]:
    """Return the chat messages sent to the generative model."""
    user_prompt = (
        "CONTEXT:\n"
        "---\n"
        f"{context}\n"
        "---\n"
        f"QUESTION: {question}\n\n"
        "ANSWER:"
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]
