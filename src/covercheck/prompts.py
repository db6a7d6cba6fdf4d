"""Prompt text for answer generation."""

from covercheck.citations import CitationContext
from covercheck.models import Intent

STYLE_DIRECTIVE_SA = """
You are a medical aid assistant for South Africans. Answer questions clearly using the provided documents.

LANGUAGE REQUIREMENTS:
- Use South African/British English (hospitalisation, centre, not center)
- Use Rands (R) not dollars ($)
- Use "medical aid" or "medical scheme" not just "insurance"
- Use SA terms: GP, casualty (not ER), network hospitals, gap cover, PMBs

RULES:
1. Answer directly and concisely
2. Use plain language - avoid jargon unless explaining it
3. Include specific Rand amounts from the documents
4. If you use medical aid terms (co-payment, gap cover, PMBs, etc.), briefly explain them in brackets
5. Focus on answering what was asked - don't provide unsolicited advice
6. Reference SA context where relevant (Netcare, Life Healthcare, etc.)

ANSWER FORMAT:
- Start with the direct answer
- Include relevant costs in Rands
- Only explain terms if you used them
- Be brief and specific

Answer based ONLY on the provided documents below.
"""

CITATION_DIRECTIVE = (
    "IMPORTANT: When answering, cite your sources by the document name shown "
    'in each source label (e.g., "According to the Discovery Health Maternity '
    'Benefits guide..."), not by a bare number such as "Source 1". This helps '
    "users verify the information.\n\n"
    "YOUR ANSWER (Remember: Use SA English, Rands, and medical aid terminology):"
)


def intent_guidance(intent: Intent) -> str | None:
    """Extra instructions for a question's intent, or None for general questions."""
    match intent:
        case Intent.PREGNANCY:
            return (
                "FOCUS: This is a maternity question. Cover antenatal visits, "
                "scans, the birth itself (natural and caesarean), hospital stay, "
                "and newborn care. Mention waiting periods and any registration "
                "or pre-authorisation the member must complete."
            )
        case Intent.CHRONIC:
            return (
                "FOCUS: This is a chronic-condition question. Say whether the "
                "condition is on the Chronic Disease List (CDL) or a PMB, whether "
                "medication is paid from risk or savings, and any formulary, "
                "registration or designated-pharmacy requirements."
            )
        case Intent.EMERGENCY:
            return (
                "FOCUS: This is an emergency question. Explain casualty and "
                "ambulance cover first, whether emergencies are covered at "
                "non-network hospitals, and any co-payments or authorisation "
                "that must follow the emergency."
            )
        case Intent.HOSPITAL:
            return (
                "FOCUS: This is an in-hospital question. Explain pre-authorisation, "
                "network hospital requirements, co-payments for the procedure, "
                "and specialist or anaesthetist gaps the member may pay."
            )
        case Intent.GENERAL:
            return None


def partition_guidance(citations: CitationContext, partition: str | None) -> str | None:
    """Tell the model which medical aid to focus on, or to compare them."""
    partitions = citations.partitions
    if partition:
        return f"SCHEME: Focus your answer on {partition}."
    if len(partitions) > 1:
        names = ", ".join(partitions[:-1]) + f" and {partitions[-1]}"
        return (
            f"SCHEMES: The documents cover {names}. Give a comparative answer "
            "that sets out what each scheme offers, then end by asking the "
            "user which medical aid they belong to or are considering."
        )
    if len(partitions) == 1:
        return f"SCHEME: Focus your answer on {partitions[0]}."
    return None


def compose_prompt(
    citations: CitationContext,
    intent: Intent,
    partition: str | None,
    question: str,
    style_directive: str = STYLE_DIRECTIVE_SA,
) -> str:
    """Assemble the generation prompt in its fixed section order."""
    sections = [
        style_directive.strip(),
        f"MEDICAL AID DOCUMENTS TO USE:\n{citations.context_block}",
    ]
    guidance = intent_guidance(intent)
    if guidance:
        sections.append(guidance)
    scheme = partition_guidance(citations, partition)
    if scheme:
        sections.append(scheme)
    sections.append(f"USER'S QUESTION: {question}")
    sections.append(CITATION_DIRECTIVE)
    return "\n\n".join(sections)
