"""South African medical-aid jargon glossary with plain-English explanations."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class JargonTerm:
    term: str
    category: str
    technical_definition: str
    simple_explanation: str
    analogy: str | None = None
    example: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


GLOSSARY: tuple[JargonTerm, ...] = (
    # Payment terms
    JargonTerm(
        term="Monthly Contribution / Premium",
        category="payment",
        technical_definition="The amount you pay each month for your medical aid cover",
        simple_explanation="Your monthly subscription fee for having medical aid",
        analogy="Like your DSTV or Netflix subscription - you pay every month to keep your cover active",
        example="If your contribution is R4,500/month, that's what you pay just to have medical aid, before you even use it",
    ),
    JargonTerm(
        term="Co-payment / Co-pay",
        category="payment",
        technical_definition="A fixed amount you pay when using certain services, with medical aid covering the rest",
        simple_explanation="A small fixed fee you pay each time you visit a doctor or hospital",
        analogy="Like paying an entrance fee at a venue - you pay this amount every visit",
        example="Your GP charges R750 for a consultation, but with a R150 co-pay, you only pay R150 and medical aid covers the rest",
    ),
    JargonTerm(
        term="Above Threshold Benefit (ATB)",
        category="payment",
        technical_definition="Benefits you can access after meeting your annual threshold",
        simple_explanation="Extra benefits that only kick in after you've spent a certain amount",
        analogy="Like a loyalty programme - once you've spent enough, you get extra perks",
        example="After you've paid R10,000 in medical expenses, your scheme starts covering more procedures",
    ),
    JargonTerm(
        term="Out-of-Pocket / Self-Payment Gap",
        category="payment",
        technical_definition="The difference between what your specialist charges and what medical aid pays",
        simple_explanation="The amount you must pay yourself because the doctor charges more than medical aid covers",
        analogy="Like when a restaurant bill is more than your voucher - you pay the difference",
        example="Specialist charges R2,000, medical aid pays R1,400 (100% of tariff), you pay R600 gap",
    ),
    JargonTerm(
        term="Annual Threshold / Savings Account",
        category="payment",
        technical_definition="Day-to-day medical expenses paid from your allocated savings",
        simple_explanation="Your personal medical savings pot that you use for GP visits, meds, etc.",
        analogy="Like a prepaid wallet specifically for medical costs",
        example="If you have R15,000 in your savings account, you use this for day-to-day medical expenses first",
    ),
    # Coverage terms
    JargonTerm(
        term="Prescribed Minimum Benefits (PMBs)",
        category="coverage",
        technical_definition="A list of conditions, procedures, and medications that must be covered in full",
        simple_explanation="Emergency and serious illnesses that your medical aid MUST cover 100%",
        analogy="Like your constitutional rights - these are guaranteed protections you can't be denied",
        example="Heart attack, cancer treatment, childbirth - must be covered at a network hospital",
    ),
    JargonTerm(
        term="Network Hospital / Designated Service Provider (DSP)",
        category="coverage",
        technical_definition="Hospitals that have agreements with your medical scheme",
        simple_explanation="Hospitals that have special deals with your medical aid - costs you less",
        analogy="Like preferred suppliers - they give your scheme a discount, so you pay less or nothing",
        example="Going to Netcare Sunninghill (network) = R0. Going to a private hospital (non-network) = pay the gap",
    ),
    JargonTerm(
        term="In-Hospital Cover",
        category="coverage",
        technical_definition="Cover for procedures and treatment whilst admitted to hospital",
        simple_explanation="What's covered when you need to stay overnight in hospital",
        analogy="Like comprehensive car insurance - covers the big, expensive stuff",
        example="Surgery, hospital bed, theatre costs, specialist fees during your hospital stay",
    ),
    JargonTerm(
        term="Out-of-Hospital / Day-to-Day Benefits",
        category="coverage",
        technical_definition="Cover for medical expenses that don't require hospitalisation",
        simple_explanation="Everyday medical costs like GP visits, scripts, dentist, optometrist",
        analogy="Like your petrol budget - regular, smaller expenses",
        example="GP consultation, chronic medication, dentist check-up, new glasses",
    ),
    JargonTerm(
        term="Formulary / Medicine List",
        category="coverage",
        technical_definition="The list of medicines your medical aid will pay for",
        simple_explanation="The approved list of medications your medical aid covers",
        analogy="Like a restaurant menu - these are the options your scheme covers",
        example="Generic paracetamol is covered. Branded Panado Extra might not be",
    ),
    JargonTerm(
        term="Pre-Authorisation",
        category="coverage",
        technical_definition="Approval required from your medical aid before certain procedures",
        simple_explanation="Your medical aid needs to say 'yes' before you get certain treatments",
        analogy="Like getting approval from your manager before making a big purchase at work",
        example="Before getting an MRI scan, your doctor must get pre-auth from your medical aid",
    ),
    # Scheme types
    JargonTerm(
        term="Hospital Plan",
        category="scheme-type",
        technical_definition="Cover for in-hospital procedures only, no day-to-day benefits",
        simple_explanation="Basic plan that only covers you if you're admitted to hospital",
        analogy="Like having insurance only for big car accidents, not regular services",
        example="Lower monthly cost (R2,000/month), but GP visits and meds come from your pocket",
    ),
    JargonTerm(
        term="Comprehensive Plan",
        category="scheme-type",
        technical_definition="Full cover including in-hospital and day-to-day benefits",
        simple_explanation="Complete cover - hospital AND everyday medical costs like GP, dentist",
        analogy="Like comprehensive car insurance - covers everything",
        example="Higher monthly cost (R6,000/month), but covers GP, specialists, hospital, meds",
    ),
    # South African specifics
    JargonTerm(
        term="Gap Cover",
        category="special",
        technical_definition="Insurance that covers the shortfall between what specialists charge and medical aid tariffs",
        simple_explanation="Extra insurance that pays the gap when doctors charge more than medical aid covers",
        analogy="Like topping up your tank when it's not quite full - fills the gap",
        example="Specialist charges R3,000, medical aid pays R1,800, gap cover pays the R1,200 difference",
    ),
    JargonTerm(
        term="Chronic Disease List (CDL)",
        category="special",
        technical_definition="25 chronic conditions that must be covered from risk benefits, not savings",
        simple_explanation="List of 25 serious long-term illnesses that medical aid MUST cover",
        analogy="Like VIP status - if you have these conditions, you get special unlimited cover",
        example="Diabetes, asthma, high blood pressure - medication comes from risk, not your savings",
    ),
    JargonTerm(
        term="Waiting Period",
        category="special",
        technical_definition="Time you must be a member before certain benefits are available",
        simple_explanation="How long you must wait after joining before you can claim for certain things",
        analogy="Like a probation period at a new job - can't access everything immediately",
        example="3-month general waiting period, 12 months for pregnancy cover",
    ),
    JargonTerm(
        term="Late Joiner Penalty",
        category="special",
        technical_definition="Additional premium charged if you join a medical scheme after age 35",
        simple_explanation="Extra fee you pay if you only join medical aid when you're older",
        analogy="Like surge pricing - waited too long, costs more now",
        example="Join at 40 = pay 5% extra for life. Join at 50 = pay 25% extra",
    ),
    JargonTerm(
        term="Dependant",
        category="special",
        technical_definition="Family members covered under the principal member's policy",
        simple_explanation="Your spouse, children, or other family members on your medical aid",
        analogy="Like adding people to your Netflix account",
        example="Add your 2 children as dependants - pay R1,500 extra per child per month",
    ),
    # Procedures
    JargonTerm(
        term="Casualty / Emergency Room",
        category="procedure",
        technical_definition="Hospital department for urgent, life-threatening conditions",
        simple_explanation="Where you go for serious, urgent medical emergencies",
        analogy="Like calling 10111 - only for real emergencies",
        example="Chest pain, severe injury, poisoning. Usually R3,000-R5,000 if not admitted",
    ),
    JargonTerm(
        term="Authorised Tariff / Medical Aid Rate",
        category="procedure",
        technical_definition="The rate medical aid uses to calculate what they'll pay for procedures",
        simple_explanation="What medical aid thinks a procedure should cost",
        analogy="Like the RRP (recommended retail price) - but doctors can charge more",
        example="Medical aid rate for consultation: R550. Your doctor charges R850. You pay R300 gap",
    ),
)


def _aliases(term: JargonTerm) -> list[str]:
    """Split ``"Gap Cover"`` or ``"Co-payment / Co-pay"`` into lower-case names.

    Parenthesised abbreviations such as ``(PMBs)`` become names too.
    """
    names = []
    for part in term.term.split("/"):
        part = part.strip()
        if "(" in part and part.endswith(")"):
            base, abbr = part[:-1].split("(", 1)
            names.extend([base.strip().lower(), abbr.strip().lower()])
        else:
            names.append(part.lower())
    return [n for n in names if n]


def explain_term(term: str) -> JargonTerm | None:
    """Look up a term by exact name first, then by substring."""
    needle = term.strip().lower()
    if not needle:
        return None
    for entry in GLOSSARY:
        if entry.term.lower() == needle or needle in _aliases(entry):
            return entry
    for entry in GLOSSARY:
        if needle in entry.term.lower():
            return entry
    return None


def find_terms(text: str) -> list[JargonTerm]:
    """Return every glossary term mentioned anywhere in ``text``."""
    lower = text.lower()
    return [entry for entry in GLOSSARY if any(alias in lower for alias in _aliases(entry))]
