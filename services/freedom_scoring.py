"""Freedom Diagnostic scoring: module averages, sprint ranking and recommendations.

The diagnostic asks two questions for each of six modules (M1..M6), each
answered on a 0-10 scale. Module averages feed five sprints:

    S1  Position for Profit            -> M1
    S2  Engineer the Buyer Journey     -> M2
    S3  Sales system without you       -> M4
    S4  Delivery (min of M3 and M5)    -> Delivery
    S5  Refine, Release, Repeat        -> M6

The weakest sprints are recommended first.
"""
import math
from functools import cmp_to_key
from typing import Any, Dict, List

from utils.validation import validate_number

MODULE_KEYS = ['M1', 'M2', 'M3', 'M4', 'M5', 'M6']
ANSWER_KEYS = [f"{module}_Q{question}" for module in MODULE_KEYS for question in (1, 2)]

MAX_TOTAL_SCORE = 60
TIE_THRESHOLD = 0.2

SPRINT_TITLES = {
    'S1': 'Lock In Your Most Profitable Service Zone',
    'S2': 'Create a Smooth Path from First Contact to Commitment',
    'S3': 'Sell Without Being a Bottleneck',
    'S4': 'Streamline Client Delivery without Losing Your Personal Touch',
    'S5': 'Continuously Improve without Burning It Down',
}

# (first recommendation, follow-up recommendation)
SPRINT_EXPLANATIONS = {
    'S1': ('Positioning/pricing is limiting margins and demand.',
           'Strengthen your market position and pricing strategy.'),
    'S2': ('Buyer path is unclear/too manual; streamlining lifts conversions.',
           'Smooth out your client acquisition journey.'),
    'S3': ("Sales relies on you; we'll reduce your involvement without pushiness.",
           'Build systems that sell without you being the bottleneck.'),
    'S4': ("Delivery depends on you; we'll streamline and delegate cleanly.",
           'Create delivery systems that work without your constant involvement.'),
    'S5': ('Systems review cadence is weak; this prevents backsliding.',
           'Establish processes for continuous improvement and optimization.'),
}


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _module_average(first: float, second: float) -> float:
    return _round_half_up((first + second) / 2, 1)


def normalize_answers(answers: Dict[str, Any]) -> Dict[str, float]:
    """Validate the twelve answers; raises ValueError on missing or out-of-range values"""
    if not isinstance(answers, dict):
        raise ValueError("answers must be an object")

    missing = [key for key in ANSWER_KEYS if answers.get(key) is None]
    if missing:
        raise ValueError(f"Missing answers: {', '.join(missing)}")

    return {key: validate_number(answers[key], 0, 10, field_name=key) for key in ANSWER_KEYS}


def get_sprint_explanation(sprint_key: str, score: float, is_first: bool) -> str:
    first, follow_up = SPRINT_EXPLANATIONS[sprint_key]
    explanation = first if is_first else follow_up

    if is_first and score <= 4.0:
        explanation = f"Critical bottleneck: {explanation.lower()}"
    elif is_first and score <= 6.0:
        explanation = f"Major gap: {explanation.lower()}"

    return explanation


def rank_sprints(sprint_scores: Dict[str, float], m3: float, m5: float) -> List[Dict[str, Any]]:
    """Order sprints weakest first.

    Scores within TIE_THRESHOLD are ties: S1 wins any tie, S2 goes before S3,
    and S4 goes earlier when M5 is below M3. Anything else falls back to the
    sprint number.
    """
    sprints = [
        {'key': key, 'score': sprint_scores[key], 'tie_rank': index + 1}
        for index, key in enumerate(['S1', 'S2', 'S3', 'S4', 'S5'])
    ]

    def compare(a, b):
        diff = a['score'] - b['score']
        if abs(diff) > TIE_THRESHOLD:
            return -1 if diff < 0 else 1

        if a['key'] == 'S1' or b['key'] == 'S1':
            return -1 if a['key'] == 'S1' else 1

        if {a['key'], b['key']} == {'S2', 'S3'}:
            return -1 if a['key'] == 'S2' else 1

        if (a['key'] == 'S4' or b['key'] == 'S4') and m5 < m3:
            return -1 if a['key'] == 'S4' else 1

        return a['tie_rank'] - b['tie_rank']

    return sorted(sprints, key=cmp_to_key(compare))


def score_and_recommend(answers: Dict[str, Any]) -> Dict[str, Any]:
    """Score a completed Freedom Diagnostic and pick the sprints to run first"""
    values = normalize_answers(answers)

    module_averages = {
        module: _module_average(values[f"{module}_Q1"], values[f"{module}_Q2"])
        for module in MODULE_KEYS
    }
    m1, m2, m3, m4, m5, m6 = (module_averages[module] for module in MODULE_KEYS)

    delivery = min(m3, m5)
    sprint_scores = {'S1': m1, 'S2': m2, 'S3': m4, 'S4': delivery, 'S5': m6}

    total_score = _round_half_up(sum(module_averages.values()), 1)
    percent = int(_round_half_up(total_score / MAX_TOTAL_SCORE * 100))

    ranked = rank_sprints(sprint_scores, m3, m5)

    take = 3 if ranked[0]['score'] <= 6.0 else 2

    recommended_order = [
        {
            'sprint_key': sprint['key'],
            'title': SPRINT_TITLES[sprint['key']],
            'priority': index + 1,
            'why': get_sprint_explanation(sprint['key'], sprint['score'], index == 0),
        }
        for index, sprint in enumerate(ranked[:take])
    ]

    return {
        'total_score': total_score,
        'percent': percent,
        'module_averages': module_averages,
        'sprint_scores': sprint_scores,
        'recommended_order': recommended_order,
    }
