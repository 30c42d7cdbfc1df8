"""Prompts for the safety classifier and item scorer, plus fixed patient-facing text."""

from collections.abc import Sequence

from crosscut.registry import SCORING_ANCHORS, Item

# Bump whenever prompt wording changes; recorded in SessionMeta.prompt_version.
PROMPT_VERSION = "1"

SAFETY_SYSTEM_PROMPT = """You are a safety screening assistant. Your job is to detect crisis \
signals in patient messages during a mental health check-in.

Analyze the patient's message for any signs of:
1. Suicidal ideation or intent (wanting to die, ending life, not wanting to be here anymore)
2. Self-harm ideation (cutting, hurting themselves, self-injury)
3. Violence risk (threats to harm others, homicidal ideation)

DETECTION GUIDELINES:
- Be CONSERVATIVE - flag anything that could indicate risk
- Look for both explicit and implicit signals
- Consider context and severity

EXPLICIT SIGNALS (always flag):
- "I want to die" / "I want to kill myself" / "I don't want to be here anymore"
- "I've been thinking about ending it" / "I have a plan"
- "I've been cutting myself" / "I hurt myself"
- "I want to hurt someone" / "I'm going to hurt them"

IMPLICIT SIGNALS (flag if concerning):
- "What's the point" / "Everyone would be better off without me"
- "I can't take this anymore" / "I just want it to stop"
- "I've been thinking about ways out"
- Giving away possessions, saying goodbye

URGENCY LEVELS:
- none: No safety concerns detected
- low: Vague passive ideation ("sometimes I wonder what's the point")
- medium: Active ideation without plan ("I've thought about not being here")
- high: Active ideation with some specificity ("I've been thinking about how to do it")
- critical: Immediate danger (specific plan, means, timeline)

For "high" or "critical" urgency, set safe=false.
For "none" through "medium", set safe=true but still flag risk indicators.
Leave substance_abuse_signal unset; it is not part of this check."""

_FREQUENCY_GUIDE = """FREQUENCY INFERENCE GUIDE:
The patient won't use clinical terms. Map their natural language to these anchors:

0 (Not at all): "no", "never", "not really", "I don't think so", "that's not me"
1 (Rarely, 1-2 days): "once or twice", "rarely", "not often", "occasionally", "a little"
2 (Several days): "sometimes", "a few times", "on and off", "here and there", "some days"
3 (More than half the days): "often", "most days", "frequently", "a lot", "more often than not"
4 (Nearly every day): "always", "every day", "constantly", "all the time", "non-stop"

Also consider:
- Intensity words: "really", "very", "extremely" may push score higher
- Minimizing words: "a bit", "slightly", "not too bad" may push score lower
- Duration mentioned: recent onset vs. long-standing pattern
- Impact on functioning: affects work/relationships/daily life"""

_AMBIGUITY_SCALE = """AMBIGUITY SCALE:
1 = Very clear, patient gave specific frequency indicators
3-4 = Reasonably clear with some inference needed
5-6 = Moderate ambiguity, best-guess mapping
7-8 = Quite unclear, significant inference required
9-10 = Cannot determine, patient was vague or off-topic"""

_EVIDENCE_RULES = """EVIDENCE QUOTES - CRITICAL RULES:
- Quote ONLY the patient's latest response
- NEVER quote interviewer questions or conversation context
- Do NOT include "Patient:" prefixes or role labels
- Do NOT quote anything containing a question mark (those are interviewer)
- At most 3 quotes per item; quotes must be exact substrings of the patient's words
- If no clear patient quote exists, return no quotes and set ambiguity to 7 or higher"""

_RISK_FLAG_RULES = """SAFETY FLAGS - be conservative, flag if in doubt:
- suicidality_mentioned: any hint of wanting to die, not wanting to be here, ending it
- self_harm_ideation: cutting, hurting self, self-punishment
- violence_risk: wanting to hurt others, violent thoughts
- substance_abuse_signal: heavy/daily use, dependence indicators, using to cope
Leave a flag unset when there is no signal for it."""

SCORING_SYSTEM_PROMPT = "\n\n".join(
    (
        "You are a clinical scoring assistant that converts natural conversation into "
        "structured symptom metrics. Score ONLY the items you are asked about, one entry "
        "per item.",
        _FREQUENCY_GUIDE,
        _AMBIGUITY_SCALE,
        _EVIDENCE_RULES,
        _RISK_FLAG_RULES,
    )
)

SAFETY_ESCALATION_SCRIPT = """I want to pause here and thank you for sharing that with me. What \
you've described sounds really difficult, and I want to make sure you get the support you need.

If you're having thoughts of hurting yourself or ending your life, please reach out to a crisis \
resource right away:

- **National Suicide Prevention Lifeline**: 988 (call or text)
- **Crisis Text Line**: Text HOME to 741741
- **International Association for Suicide Prevention**: \
https://www.iasp.info/resources/Crisis_Centres/

If you're in immediate danger, please call 911 or go to your nearest emergency room.

This screening cannot continue, but a mental health professional can provide proper support. \
Is there someone you trust, such as a friend, family member, or counselor, you can reach out \
to right now?"""


def build_safety_prompt(patient_text: str) -> str:
    """User prompt for one safety classification."""
    return f'PATIENT MESSAGE:\n"{patient_text}"\n\nReturn your analysis.'


def format_context(lines: Sequence[tuple[str, str]]) -> str:
    """Render (role, text) pairs as a plain conversation excerpt."""
    if not lines:
        return "(no prior conversation)"
    return "\n".join(f"{role.capitalize()}: {text}" for role, text in lines)


def build_scoring_prompt(
    items: Sequence[Item], patient_text: str, context: Sequence[tuple[str, str]]
) -> str:
    """User prompt asking for scores on one or more items."""
    item_lines = "\n".join(
        f'- {item.item_id} ({item.domain.value}): "{item.text}"' for item in items
    )
    anchors = "\n".join(f"{score} = {label}" for score, label in SCORING_ANCHORS.items())
    return (
        f"ITEMS TO SCORE (past two weeks):\n{item_lines}\n\n"
        f"SCALE:\n{anchors}\n\n"
        f"CONVERSATION SO FAR:\n{format_context(context)}\n\n"
        f'PATIENT RESPONSE:\n"{patient_text}"'
    )
