"""
AI-assisted campaign authoring with deterministic fallbacks.
When the provider is down or answers with something unparseable, callers get
a predictable payload instead of an error.
"""
import logging
from decimal import Decimal

from utils.ai_client import extract_json, generate_text
from utils.errors import UpstreamError

logger = logging.getLogger(__name__)

FALLBACK_MILESTONE_STEPS = (
    (Decimal('0.25'), 'Getting started', 'First quarter of the goal is funded.'),
    (Decimal('0.50'), 'Halfway there', 'Half of the goal is funded.'),
    (Decimal('0.75'), 'Final stretch', 'Three quarters of the goal is funded.'),
    (Decimal('1.00'), 'Goal reached', 'The campaign is fully funded.'),
)

FALLBACK_TIPS = [
    "Post an update to thank recent supporters and share your progress.",
    "Share your campaign on social media with a short personal note.",
    "Add or refresh reward tiers to give new supporters a reason to join.",
    "Reply to comments and questions within a day to build trust.",
]

MAX_MILESTONES = 6


def fallback_milestones(goal):
    goal = Decimal(str(goal))
    return [
        {
            'title': title,
            'amount': float((goal * share).quantize(Decimal('0.01'))),
            'description': description,
        }
        for share, title, description in FALLBACK_MILESTONE_STEPS
    ]


def _clean_milestones(items, goal):
    goal = float(goal)
    cleaned = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        title = str(item.get('title') or '').strip()
        try:
            amount = round(float(item.get('amount')), 2)
        except (TypeError, ValueError):
            continue
        if not title or amount <= 0 or amount > goal:
            continue
        cleaned.append({
            'title': title[:150],
            'amount': amount,
            'description': str(item.get('description') or '').strip()[:500],
        })
    cleaned.sort(key=lambda m: m['amount'])
    return cleaned[:MAX_MILESTONES]


def generate_milestones(goal, category, duration=30):
    """
    Suggest funding milestones for a campaign.

    Returns:
        (milestones, used_fallback)
    """
    prompt = (
        f"Suggest 3 to 5 funding milestones for a {category} crowdfunding campaign "
        f"with a goal of {goal} over {duration} days. Respond with a JSON array of "
        f"objects with keys: title, amount, description. Amounts must not exceed the goal."
    )
    try:
        milestones = _clean_milestones(extract_json(generate_text(prompt, temperature=0.7, max_tokens=1500), 'array'), goal)
    except UpstreamError as e:
        logger.warning("Milestone generation fell back to defaults: %s", e)
        milestones = []
    if not milestones:
        return fallback_milestones(goal), True
    return milestones, False


def weekly_tips(summary):
    """
    Short improvement tips for a creator's weekly digest.

    Returns:
        (tips, used_fallback)
    """
    prompt = (
        "A crowdfunding creator had this week: "
        f"{summary['payments']} contributions totalling {summary['amount']:.2f} "
        f"across {summary['active_campaigns']} active campaigns. "
        "Give 3 short, concrete tips for next week as a JSON array of strings."
    )
    try:
        items = extract_json(generate_text(prompt, temperature=0.6, max_tokens=400), 'array')
    except UpstreamError as e:
        logger.warning("Weekly tips fell back to defaults: %s", e)
        items = None
    tips = [str(tip).strip() for tip in (items or []) if isinstance(tip, str) and tip.strip()]
    if not tips:
        return list(FALLBACK_TIPS), True
    return tips[:5], False
