"""
Screening assessment scoring.

A domain's risk index is the weight-averaged answer value of its answered
questions, from 0.0 (no concern) to 1.0. Tier 2 is required when the risk
index reaches the threshold or a red-flag question gets a concerning
answer. Report helpers turn risk indices into zones, interpretations and
recommendations.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..models.assessment import AnswerType
from .questionnaires import DOMAIN_NAMES, INVERTED_DOMAINS


# =============================================================================
# Scoring Constants
# =============================================================================

# YES is the expected answer
ANSWER_SCORES = {
    AnswerType.YES: 0.0,
    AnswerType.SOMETIMES: 0.4,
    AnswerType.NOT_SURE: 0.7,
    AnswerType.NO: 1.0,
}

# Questions describing a difficulty: YES is the concern
INVERTED_ANSWER_SCORES = {
    AnswerType.YES: 1.0,
    AnswerType.SOMETIMES: 0.6,
    AnswerType.NOT_SURE: 0.7,
    AnswerType.NO: 0.0,
}

CONCERN_ANSWERS = {AnswerType.NO, AnswerType.NOT_SURE}
INVERTED_CONCERN_ANSWERS = {AnswerType.YES, AnswerType.NOT_SURE}

TIER2_THRESHOLD = 0.46
GREEN_MAX = 0.29
YELLOW_MAX = 0.45

TIER2_REASON_RISK_INDEX = "RISK_INDEX"
TIER2_REASON_RED_FLAG = "RED_FLAG"


# =============================================================================
# Domain Score Dataclass
# =============================================================================

@dataclass
class DomainScore:
    """Tier 1 result for one domain."""

    domain_id: str
    domain_name: str
    risk_index: float
    status: str
    tier2_required: bool
    tier2_reason: Optional[str] = None
    red_flag_violations: List[str] = field(default_factory=list)

    def to_stored(self) -> Dict[str, Any]:
        """Shape kept in ``Assessment.domain_scores``."""
        return {
            "riskIndex": self.risk_index,
            "status": self.status,
            "tier2Required": self.tier2_required,
            "tier2Reason": self.tier2_reason,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain_id": self.domain_id,
            "domain_name": self.domain_name,
            "risk_index": self.risk_index,
            "status": self.status,
            "tier2_required": self.tier2_required,
            "tier2_reason": self.tier2_reason,
            "red_flag_violations": list(self.red_flag_violations),
        }


# =============================================================================
# Report Tables
# =============================================================================

# domain -> zone -> [(severity, intervention)]
DOMAIN_RECOMMENDATIONS = {
    "grossMotor": {
        "yellow": [("Mild", "Encourage active play and outdoor activities. Provide opportunities for "
                            "climbing, jumping and running in safe environments.")],
        "red": [("Moderate", "Consult with a pediatric physical therapist for assessment and targeted exercises."),
                ("Moderate", "Implement structured gross motor activities daily, focusing on balance and "
                             "coordination.")],
    },
    "fineMotor": {
        "yellow": [("Mild", "Provide activities that develop hand-eye coordination such as puzzles, "
                            "building blocks and drawing.")],
        "red": [("Moderate", "Seek occupational therapy evaluation for fine motor skill development."),
                ("Moderate", "Practice daily activities involving grasping, cutting and manipulating small "
                             "objects.")],
    },
    "speechLanguage": {
        "yellow": [("Mild", "Engage in frequent conversations, read books together daily and expand on "
                            "the child's utterances.")],
        "red": [("Severe", "Immediate referral to a speech-language pathologist for comprehensive evaluation."),
                ("Moderate", "Create a language-rich environment with consistent modeling and repetition.")],
    },
    "socialEmotional": {
        "yellow": [("Mild", "Facilitate peer interactions through playdates and group activities. Model "
                            "emotional regulation strategies.")],
        "red": [("Moderate", "Consider consultation with a child psychologist or developmental specialist."),
                ("Moderate", "Implement structured social skills training and emotional literacy activities.")],
    },
    "cognitiveLearning": {
        "yellow": [("Mild", "Provide age-appropriate puzzles, sorting games and problem-solving activities.")],
        "red": [("Moderate", "Seek educational psychology assessment to identify specific learning needs."),
                ("Moderate", "Implement individualized learning strategies and consider early intervention "
                             "services.")],
    },
    "adaptiveSelfCare": {
        "yellow": [("Mild", "Break down self-care tasks into smaller steps and provide consistent practice "
                            "opportunities.")],
        "red": [("Moderate", "Consult with an occupational therapist for adaptive skills training."),
                ("Mild", "Create visual schedules and use positive reinforcement for self-care routines.")],
    },
    "sensoryProcessing": {
        "yellow": [("Mild", "Observe and document sensory preferences. Provide sensory-friendly environments "
                            "when possible.")],
        "red": [("Moderate", "Referral to an occupational therapist specializing in sensory integration."),
                ("Moderate", "Implement a sensory diet and environmental modifications based on professional "
                             "guidance.")],
    },
    "visionHearing": {
        "yellow": [("Mild", "Schedule comprehensive vision and hearing screenings with appropriate specialists.")],
        "red": [("Severe", "Immediate referral to a pediatric ophthalmologist and audiologist for thorough "
                           "evaluation."),
                ("Moderate", "Ensure the child is seated optimally in classroom and home settings while "
                             "awaiting evaluation.")],
    },
}


def domain_name(domain_id: str) -> str:
    return DOMAIN_NAMES.get(domain_id, domain_id)


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"


# =============================================================================
# Assessment Scoring Service
# =============================================================================

class AssessmentScoringService:
    """
    Scoring rules for developmental screening.

    - Answer values: YES 0.0, SOMETIMES 0.4, NOT_SURE 0.7, NO 1.0
      (YES 1.0, SOMETIMES 0.6, NOT_SURE 0.7, NO 0.0 for difficulty questions)
    - Risk index: sum(value * weight) / sum(weight), two decimals
    - Status: GREEN <= 0.29, YELLOW <= 0.45, RED above
    - Tier 2: risk index >= 0.46, else any red-flag question answered
      with a concern
    """

    @staticmethod
    def is_inverted(domain_id: str, question: Dict[str, Any]) -> bool:
        return domain_id in INVERTED_DOMAINS or bool(question.get("invert_scoring"))

    @staticmethod
    def answer_value(answer: AnswerType, inverted: bool = False) -> float:
        scores = INVERTED_ANSWER_SCORES if inverted else ANSWER_SCORES
        return scores[AnswerType(answer)]

    @staticmethod
    def calculate_question_score(answer: AnswerType, weight: float, inverted: bool = False) -> float:
        return AssessmentScoringService.answer_value(answer, inverted) * weight

    @staticmethod
    def status_for(risk_index: float) -> str:
        if risk_index <= GREEN_MAX:
            return "GREEN"
        if risk_index <= YELLOW_MAX:
            return "YELLOW"
        return "RED"

    @staticmethod
    def calculate_domain_score(
        responses: List[Dict[str, Any]],
        questions: List[Dict[str, Any]],
        domain_id: str,
    ) -> DomainScore:
        """
        Score one domain from ``[{"question_id", "answer"}]``.

        Raises:
            ValueError: a response names a question outside ``questions``
        """
        by_id = {q["id"]: q for q in questions}
        weighted_total = 0.0
        total_weight = 0.0
        violations: List[str] = []

        for response in responses:
            question = by_id.get(response["question_id"])
            if question is None:
                raise ValueError(f"Question {response['question_id']} not found")

            answer = AnswerType(response["answer"])
            inverted = AssessmentScoringService.is_inverted(domain_id, question)
            weighted_total += AssessmentScoringService.answer_value(answer, inverted) * question["weight"]
            total_weight += question["weight"]

            concerns = INVERTED_CONCERN_ANSWERS if inverted else CONCERN_ANSWERS
            if question.get("red_flag") and answer in concerns:
                violations.append(question["id"])

        risk_index = weighted_total / total_weight if total_weight > 0 else 0.0

        tier2_reason = None
        if risk_index >= TIER2_THRESHOLD:
            tier2_reason = TIER2_REASON_RISK_INDEX
        elif violations:
            tier2_reason = TIER2_REASON_RED_FLAG

        return DomainScore(
            domain_id=domain_id,
            domain_name=domain_name(domain_id),
            risk_index=round(risk_index, 2),
            status=AssessmentScoringService.status_for(risk_index),
            tier2_required=tier2_reason is not None,
            tier2_reason=tier2_reason,
            red_flag_violations=violations,
        )

    @staticmethod
    def calculate_overall_score(domain_scores: List[DomainScore]) -> float:
        """Mean of the domain risk indices."""
        if not domain_scores:
            return 0.0
        return round(sum(d.risk_index for d in domain_scores) / len(domain_scores), 2)

    @staticmethod
    def get_recommendations(statuses: List[str]) -> List[str]:
        recommendations = []
        if "RED" in statuses:
            recommendations.append(
                "Schedule a consultation with a developmental specialist to discuss areas of concern."
            )
            recommendations.append(
                "Consider early intervention services which can significantly support your child's development."
            )
        if "YELLOW" in statuses:
            recommendations.append(
                "Monitor these areas closely and provide enriched activities to support development."
            )
            recommendations.append("Discuss your observations with your pediatrician at the next visit.")
        if not recommendations:
            recommendations.append("Your child is developing well! Continue with regular developmental check-ups.")
            recommendations.append("Keep engaging in age-appropriate play and learning activities.")
        return recommendations

    # =========================================================================
    # Report Helpers
    # =========================================================================

    @staticmethod
    def calculate_zone(risk_index: float) -> str:
        return AssessmentScoringService.status_for(risk_index).lower()

    @staticmethod
    def domain_interpretation(name: str, risk_index: float, zone: str) -> str:
        percent = f"{risk_index * 100:.0f}"
        if zone == "green":
            return (
                f"{name} development appears to be progressing well. The child is meeting expected "
                f"milestones in this area with a low risk index of {percent}%."
            )
        if zone == "yellow":
            return (
                f"{name} shows some areas that may benefit from monitoring. The moderate risk index of "
                f"{percent}% suggests keeping an eye on development in this domain and considering "
                f"supportive activities."
            )
        return (
            f"{name} indicates concerns that warrant attention. With a risk index of {percent}%, it is "
            f"recommended to consult with a developmental specialist for further evaluation and "
            f"intervention strategies."
        )

    @staticmethod
    def domain_recommendations(domain_id: str, zone: str) -> List[Dict[str, str]]:
        if zone == "green":
            return []
        entries = DOMAIN_RECOMMENDATIONS.get(domain_id, {}).get(zone)
        if not entries:
            name = domain_name(domain_id)
            if zone == "yellow":
                entries = [("Mild", f"Monitor {name} development closely and provide enrichment activities "
                                    f"in this area.")]
            else:
                entries = [("Moderate", f"Consult with a developmental specialist for comprehensive "
                                        f"evaluation of {name}.")]
        return [{"severity": severity, "intervention": text} for severity, text in entries]

    @staticmethod
    def developmental_age(development_percentage: float, age_months: int) -> str:
        """Chronological age scaled by the development percentage, as years and months."""
        months_total = round(age_months * development_percentage / 100)
        years, months = divmod(months_total, 12)
        if years == 0:
            return _plural(months, "month")
        if months == 0:
            return _plural(years, "year")
        return f"{_plural(years, 'year')}, {_plural(months, 'month')}"

    @staticmethod
    def overall_interpretation(development_percentage: float, flagged: int, total: int) -> str:
        if development_percentage >= 85 and flagged == 0:
            return (
                "The child demonstrates strong developmental progress across all assessed domains. "
                "Continue to provide enriching experiences and monitor development regularly."
            )
        if development_percentage >= 70 and flagged <= 2:
            return (
                f"The child shows generally positive development with {_plural(flagged, 'domain')} "
                f"requiring attention. Targeted support in these areas is recommended while continuing "
                f"to nurture strengths."
            )
        if development_percentage >= 50:
            return (
                f"The assessment indicates multiple areas ({flagged} of {total} domains) that would benefit "
                f"from intervention. A comprehensive evaluation by developmental specialists is recommended "
                f"to create an individualized support plan."
            )
        return (
            "The results suggest significant developmental concerns across multiple domains. Immediate "
            "consultation with a multidisciplinary team of specialists is strongly recommended to ensure "
            "the child receives appropriate support and intervention services."
        )
