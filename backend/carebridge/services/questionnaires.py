"""
Developmental screening questionnaires.

Every age group maps to one of three question bands (toddler, preschool,
school age). A band asks about the same eight domains; each domain has a
short Tier 1 screen and a Tier 2 follow-up for when Tier 1 flags it.

Questions are phrased so that YES is the expected answer, except in the
sensory domain and for questions marked ``invert_scoring``, which describe
a difficulty.
"""

from typing import Any, Dict, List

from ..core.exceptions import BadRequestError


# =============================================================================
# Age Groups
# =============================================================================

# age group -> (display name, band)
AGE_GROUPS = {
    "12-15-months": ("12-15 Months", "toddler"),
    "16-24-months": ("16-24 Months", "toddler"),
    "24-36-months": ("2-3 Years", "toddler"),
    "3-4-years": ("3-4 Years", "preschool"),
    "4-5-years": ("4-5 Years", "preschool"),
    "5-6-years": ("5-6 Years", "preschool"),
    "6-8-years": ("6-8 Years", "school"),
    "8-10-years": ("8-10 Years", "school"),
}

ESTIMATED_TIME = {
    "toddler": {"tier1": "8-10 minutes", "tier2_per_domain": "2-3 minutes"},
    "preschool": {"tier1": "10-12 minutes", "tier2_per_domain": "2-3 minutes"},
    "school": {"tier1": "10-12 minutes", "tier2_per_domain": "3-4 minutes"},
}

BAND_PREFIX = {"toddler": "tod", "preschool": "pre", "school": "sch"}


# =============================================================================
# Domains
# =============================================================================

# (id, code, name, description, why we ask)
DOMAINS = [
    ("grossMotor", "gm", "Gross Motor",
     "Large body movements such as walking, running, climbing and balance.",
     "Gross motor skills underpin play, participation and physical independence."),
    ("fineMotor", "fm", "Fine Motor",
     "Hand and finger skills such as grasping, drawing and manipulating objects.",
     "Fine motor control supports self-care, drawing and later handwriting."),
    ("speechLanguage", "sl", "Speech & Language",
     "Understanding and using words, sentences and speech sounds.",
     "Early communication delays are common and respond well to early support."),
    ("socialEmotional", "se", "Social-Emotional",
     "Relating to others, sharing attention and managing feelings.",
     "Social engagement and regulation shape learning and relationships."),
    ("cognitiveLearning", "cl", "Cognitive",
     "Thinking, play, problem solving, attention and early academic skills.",
     "Cognitive skills show how a child explores, learns and remembers."),
    ("adaptiveSelfCare", "sc", "Self-Care",
     "Everyday independence: eating, dressing, toileting and routines.",
     "Adaptive skills reflect how development translates into daily life."),
    ("sensoryProcessing", "sp", "Sensory",
     "How the child responds to sound, touch, movement, taste and smell.",
     "Strong sensory reactions can affect behaviour, eating, sleep and learning."),
    ("visionHearing", "vh", "Vision & Hearing",
     "Seeing and hearing well enough for play and learning.",
     "Undetected vision or hearing problems can look like other delays."),
]

DOMAIN_SOURCES = {
    "grossMotor": ["CDC Developmental Milestones", "ASQ-3"],
    "fineMotor": ["CDC Developmental Milestones", "ASQ-3"],
    "speechLanguage": ["ASHA Developmental Norms", "CDC Developmental Milestones"],
    "socialEmotional": ["ASQ:SE-2", "M-CHAT-R/F"],
    "cognitiveLearning": ["CDC Developmental Milestones", "Bayley-4 constructs"],
    "adaptiveSelfCare": ["Vineland-3 constructs", "ASQ-3"],
    "sensoryProcessing": ["Sensory Profile 2 constructs"],
    "visionHearing": ["AAP Bright Futures", "JCIH Position Statement"],
}

DOMAIN_NAMES = {domain_id: name for domain_id, _, name, _, _ in DOMAINS}

# Domains whose questions all describe a difficulty
INVERTED_DOMAINS = {"sensoryProcessing"}


# =============================================================================
# Question Bank
# =============================================================================

# band -> domain -> (tier 1, tier 2); entries are
# (question, weight, red flag, construct) with an optional trailing True
# for a single question phrased as a difficulty
QUESTION_BANK: Dict[str, Dict[str, tuple]] = {
    "toddler": {
        "grossMotor": (
            [("Does your child walk on their own without holding on?", 2.0, True, "Independent walking"),
             ("Can your child squat to pick up a toy and stand back up?", 1.0, False, "Postural control"),
             ("Does your child climb onto low furniture or steps?", 1.0, False, "Climbing")],
            [("Can your child kick a ball forward?", 1.0, False, "Ball skills"),
             ("Does your child walk up steps with help?", 1.5, False, "Stair negotiation")],
        ),
        "fineMotor": (
            [("Does your child pick up small items with thumb and finger?", 1.5, True, "Pincer grasp"),
             ("Does your child scribble with a crayon?", 1.0, False, "Tool use"),
             ("Can your child stack two or more blocks?", 1.0, False, "Bimanual coordination")],
            [("Does your child turn pages in a board book?", 1.0, False, "Manipulation"),
             ("Can your child put small objects into a container and take them out?", 1.0, False, "Release")],
        ),
        "speechLanguage": (
            [("Does your child say a few words besides 'mama' and 'dada'?", 2.0, True, "Expressive vocabulary"),
             ("Does your child follow simple directions like 'give me the ball'?", 1.5, True, "Receptive language"),
             ("Does your child point to show you something interesting?", 1.5, False, "Joint attention")],
            [("Does your child combine two words, such as 'more milk'?", 1.5, False, "Word combinations"),
             ("Does your child point to body parts when you name them?", 1.0, False, "Vocabulary comprehension")],
        ),
        "socialEmotional": (
            [("Does your child look at you when you call their name?", 2.0, True, "Response to name"),
             ("Does your child copy what you do, like clapping or waving?", 1.0, False, "Imitation"),
             ("Does your child have frequent, intense tantrums that are hard to calm?", 1.0, False,
              "Emotional regulation", True)],
            [("Does your child show interest in other children?", 1.0, False, "Peer interest"),
             ("Does your child bring things to show you?", 1.0, False, "Shared enjoyment")],
        ),
        "cognitiveLearning": (
            [("Does your child look for a toy you hid under a blanket?", 1.0, False, "Object permanence"),
             ("Does your child use objects the right way, like a cup or a spoon?", 1.5, False, "Functional play"),
             ("Does your child play simple pretend, like feeding a doll?", 1.0, False, "Symbolic play")],
            [("Can your child match two identical objects?", 1.0, False, "Matching"),
             ("Does your child try different ways to solve a simple problem?", 1.0, False, "Problem solving")],
        ),
        "adaptiveSelfCare": (
            [("Does your child feed themself finger foods?", 1.0, False, "Self-feeding"),
             ("Does your child try to drink from an open cup?", 1.0, False, "Cup drinking"),
             ("Does your child help with dressing by pushing arms through sleeves?", 1.0, False,
              "Dressing participation")],
            [("Does your child use a spoon, even with some spilling?", 1.0, False, "Utensil use"),
             ("Does your child let you know when their nappy is wet or dirty?", 1.0, False, "Toileting awareness")],
        ),
        "sensoryProcessing": (
            [("Is your child extremely upset by everyday sounds like the vacuum?", 1.0, False,
              "Auditory sensitivity"),
             ("Does your child refuse many food textures?", 1.0, False, "Oral sensitivity"),
             ("Does your child seem unaware of pain or bumps?", 1.5, True, "Under-responsivity")],
            [("Does your child avoid messy play like sand or finger paint?", 1.0, False, "Tactile defensiveness"),
             ("Does your child constantly seek spinning or crashing movement?", 1.0, False, "Vestibular seeking")],
        ),
        "visionHearing": (
            [("Does your child turn toward sounds and voices?", 2.0, True, "Auditory orientation"),
             ("Does your child follow a moving toy with their eyes?", 1.5, True, "Visual tracking"),
             ("Does your child recognise familiar people from across the room?", 1.0, False, "Distance vision")],
            [("Does your child respond to quiet speech without seeing your face?", 1.0, False, "Hearing acuity"),
             ("Do your child's eyes look straight, without one turning in or out?", 1.0, False, "Ocular alignment")],
        ),
    },
    "preschool": {
        "grossMotor": (
            [("Can your child hop on one foot?", 1.5, False, "Balance"),
             ("Can your child catch a large ball with both hands?", 1.0, False, "Ball skills"),
             ("Does your child run without falling often?", 1.5, True, "Gait stability")],
            [("Can your child pedal a tricycle?", 1.0, False, "Coordination"),
             ("Can your child walk down stairs alternating feet?", 1.0, False, "Stair negotiation")],
        ),
        "fineMotor": (
            [("Does your child hold a crayon with fingers rather than a fist?", 1.5, False, "Grasp maturity"),
             ("Can your child copy a circle or a cross?", 1.0, False, "Visual-motor integration"),
             ("Can your child use child-safe scissors to snip paper?", 1.0, False, "Scissor skills")],
            [("Can your child draw a person with at least three body parts?", 1.0, False, "Drawing"),
             ("Can your child do up large buttons?", 1.0, False, "Fastening")],
        ),
        "speechLanguage": (
            [("Do strangers understand most of what your child says?", 1.5, True, "Intelligibility"),
             ("Does your child speak in sentences of four or more words?", 1.5, False, "Sentence length"),
             ("Can your child answer simple 'who', 'what' and 'where' questions?", 1.0, False, "Comprehension")],
            [("Can your child retell a short story in order?", 1.0, False, "Narrative"),
             ("Does your child use words like 'in', 'on' and 'under' correctly?", 1.0, False, "Spatial concepts")],
        ),
        "socialEmotional": (
            [("Does your child play cooperatively with other children?", 1.5, False, "Peer play"),
             ("Does your child take turns in simple games?", 1.0, False, "Turn taking"),
             ("Does your child become very upset by small changes to routine?", 1.0, False, "Flexibility", True)],
            [("Does your child show concern when someone is hurt?", 1.0, False, "Empathy"),
             ("Can your child separate from you at preschool without long distress?", 1.0, False, "Separation")],
        ),
        "cognitiveLearning": (
            [("Can your child name at least four colours?", 1.0, False, "Concept knowledge"),
             ("Can your child count five objects correctly?", 1.0, False, "Early numeracy"),
             ("Does your child understand 'same' and 'different'?", 1.0, False, "Classification")],
            [("Can your child complete a simple puzzle of ten or more pieces?", 1.0, False, "Visual reasoning"),
             ("Does your child remember and follow a three-step instruction?", 1.5, False, "Working memory")],
        ),
        "adaptiveSelfCare": (
            [("Is your child toilet trained during the day?", 1.0, False, "Toileting"),
             ("Can your child dress themself with little help?", 1.0, False, "Dressing"),
             ("Can your child wash and dry their hands?", 1.0, False, "Hygiene")],
            [("Does your child use a fork well?", 1.0, False, "Utensil use"),
             ("Can your child put on shoes without help?", 1.0, False, "Footwear")],
        ),
        "sensoryProcessing": (
            [("Does your child cover their ears at ordinary noise levels?", 1.0, False, "Auditory sensitivity"),
             ("Is your child bothered by clothing tags or seams?", 1.0, False, "Tactile sensitivity"),
             ("Does your child crash into people or objects on purpose a lot?", 1.0, False,
              "Proprioceptive seeking")],
            [("Is your child very fearful of swings or having their feet off the ground?", 1.0, False,
              "Gravitational insecurity"),
             ("Does your child eat only a very narrow range of foods?", 1.5, True, "Restricted eating")],
        ),
        "visionHearing": (
            [("Does your child respond when called from another room?", 1.5, True, "Hearing"),
             ("Does your child see small pictures in books without holding them very close?", 1.0, False,
              "Near vision"),
             ("Does your child often squint or tilt their head to see?", 1.0, False, "Visual comfort", True)],
            [("Has your child passed a hearing check in the last year?", 1.0, False, "Hearing screening"),
             ("Has your child passed a vision check in the last year?", 1.0, False, "Vision screening")],
        ),
    },
    "school": {
        "grossMotor": (
            [("Can your child ride a bicycle without stabilisers?", 1.0, False, "Balance"),
             ("Can your child skip and jump rope?", 1.0, False, "Coordination"),
             ("Can your child keep up physically with peers in play?", 1.5, True, "Endurance")],
            [("Can your child throw and catch a small ball?", 1.0, False, "Ball skills"),
             ("Can your child stand on one foot for ten seconds?", 1.0, False, "Static balance")],
        ),
        "fineMotor": (
            [("Is your child's handwriting readable to others?", 1.5, False, "Handwriting"),
             ("Can your child tie shoelaces?", 1.0, False, "Bilateral coordination"),
             ("Can your child cut along a curved line?", 1.0, False, "Scissor skills")],
            [("Can your child write for ten minutes without hand fatigue?", 1.0, False, "Writing endurance"),
             ("Can your child build small construction toys from instructions?", 1.0, False, "Dexterity")],
        ),
        "speechLanguage": (
            [("Can your child explain events clearly and in the right order?", 1.5, False, "Narrative"),
             ("Does your child follow multi-step classroom instructions?", 1.5, True, "Comprehension"),
             ("Is your child's speech clear, without sound errors?", 1.0, False, "Articulation")],
            [("Does your child understand jokes and figurative phrases?", 1.0, False, "Pragmatic language"),
             ("Can your child find the right word without long pauses?", 1.0, False, "Word retrieval")],
        ),
        "socialEmotional": (
            [("Does your child have at least one close friend?", 1.5, True, "Friendship"),
             ("Can your child manage disappointment without a major outburst?", 1.0, False, "Regulation"),
             ("Does your child worry so much that it stops them doing everyday things?", 1.0, False,
              "Anxiety", True)],
            [("Does your child understand other people's points of view?", 1.0, False, "Perspective taking"),
             ("Does your child follow group rules in games?", 1.0, False, "Rule following")],
        ),
        "cognitiveLearning": (
            [("Is your child reading at about the level of classmates?", 1.5, False, "Literacy"),
             ("Can your child focus on homework for 15-20 minutes?", 1.0, False, "Attention"),
             ("Does your child understand basic addition and subtraction?", 1.0, False, "Numeracy")],
            [("Can your child plan and finish a short project?", 1.0, False, "Executive function"),
             ("Does your child remember what they learned the day before?", 1.0, False, "Memory")],
        ),
        "adaptiveSelfCare": (
            [("Does your child get ready in the morning with few reminders?", 1.0, False, "Routines"),
             ("Can your child bathe or shower with minimal help?", 1.0, False, "Hygiene"),
             ("Does your child keep track of their belongings?", 1.0, False, "Organisation")],
            [("Can your child prepare a simple snack?", 1.0, False, "Independence"),
             ("Does your child know their address or a parent's phone number?", 1.0, False, "Safety awareness")],
        ),
        "sensoryProcessing": (
            [("Does noise in busy places like the cafeteria overwhelm your child?", 1.0, False,
              "Auditory sensitivity"),
             ("Does your child fidget constantly or need to move to concentrate?", 1.0, False, "Movement seeking"),
             ("Does your child avoid certain clothing, grooming or textures?", 1.0, False, "Tactile sensitivity")],
            [("Is your child unusually clumsy or heavy-handed?", 1.0, False, "Body awareness"),
             ("Does your child react strongly to smells others barely notice?", 1.0, False,
              "Olfactory sensitivity")],
        ),
        "visionHearing": (
            [("Can your child see the board at school without difficulty?", 1.5, True, "Distance vision"),
             ("Does your child hear instructions in a noisy classroom?", 1.0, False, "Hearing in noise"),
             ("Does your child often complain of headaches or tired eyes when reading?", 1.0, False,
              "Visual strain", True)],
            [("Does your child often lose their place when reading?", 1.0, False, "Visual tracking", True),
             ("Does your child often ask you to repeat yourself?", 1.0, False, "Auditory processing", True)],
        ),
    },
}


def _build_questions(band: str, code: str, domain_id: str, why: str, tier: int, entries: list) -> List[Dict[str, Any]]:
    questions = []
    for n, entry in enumerate(entries, start=1):
        text, weight, red_flag, construct = entry[:4]
        question = {
            "id": f"{BAND_PREFIX[band]}-{code}-t{tier}-{n}",
            "question": text,
            "weight": weight,
            "red_flag": red_flag,
            "construct": construct,
            "sources": DOMAIN_SOURCES[domain_id],
            "why_we_ask": why,
        }
        if len(entry) > 4 and entry[4]:
            question["invert_scoring"] = True
        questions.append(question)
    return questions


def load_questionnaire(age_group: str) -> Dict[str, Any]:
    """
    Build the questionnaire for an age group.

    Raises:
        BadRequestError: no questionnaire exists for the age group
    """
    if age_group not in AGE_GROUPS:
        raise BadRequestError(f"Questionnaire for age group {age_group} not found")

    display_name, band = AGE_GROUPS[age_group]
    bank = QUESTION_BANK[band]
    domains = []
    for domain_id, code, name, description, why in DOMAINS:
        tier1, tier2 = bank[domain_id]
        domains.append({
            "id": domain_id,
            "name": name,
            "description": description,
            "tier1": _build_questions(band, code, domain_id, why, 1, tier1),
            "tier2": _build_questions(band, code, domain_id, why, 2, tier2),
        })

    return {
        "age_group": age_group,
        "display_name": display_name,
        "estimated_time": dict(ESTIMATED_TIME[band]),
        "domains": domains,
    }


def find_question(questionnaire: Dict[str, Any], question_id: str):
    """Return ``(domain, question, tier)`` for a question id, or None."""
    for domain in questionnaire["domains"]:
        for tier in (1, 2):
            for question in domain[f"tier{tier}"]:
                if question["id"] == question_id:
                    return domain, question, tier
    return None
