"""TemplateGenerator — deterministic content for every flow, no AI involved.

Guides get real, answer-driven content (mortgage arithmetic, pet
requirement timeline, apostille offices grouped by state, bank ranking).
Documents get a plain placeholder, because a useful visa letter needs the
AI; the placeholder exists so completion never fails outright.

Builders are dispatched by ``FlowType``; any flow
without a dedicated builder gets the default document.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Callable

from relocation_flows.interfaces import ContentGenerator
from relocation_flows.models.artifact import ContentSection, GeneratedContent
from relocation_flows.models.conversation import Answer, GenerationRequest
from relocation_flows.models.flow import FlowType
from relocation_flows.registry import QuestionSetRegistry
from relocation_flows.store import Clock, utcnow

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_BODY = (
    "Document generated based on your answers.\n\n"
    "Please note: AI generation is not configured. This is a basic template."
)

# --- Mortgage assumptions ---
DEFAULT_PURCHASE_PRICE = 500_000
DEFAULT_LOAN_AMOUNT = 400_000
DEFAULT_LOAN_TERM_YEARS = 20
MAX_LOAN_TERM_YEARS = 30
# Typed amounts above this are treated as the cap
MAX_AMOUNT = 100_000_000
REFERENCE_RATE = 0.035

# --- Bank catalogue used for ranking ---
_BANKS: list[dict[str, Any]] = [
    {
        "name": "BNP Paribas", "rating": 4.5,
        "english": True, "online": True, "mortgage": True,
        "pros": ["Largest French bank", "English services", "International presence"],
        "cons": ["Higher fees", "Can be bureaucratic"],
    },
    {
        "name": "Crédit Agricole", "rating": 4.0,
        "english": False, "online": True, "mortgage": True,
        "pros": ["Good mortgage rates", "Strong regional presence"],
        "cons": ["Limited English", "Varies by region"],
    },
    {
        "name": "Société Générale", "rating": 4.0,
        "english": True, "online": True, "mortgage": True,
        "pros": ["English services available", "Good online banking"],
        "cons": ["Moderate fees"],
    },
    {
        "name": "Boursorama", "rating": 4.5,
        "english": False, "online": True, "mortgage": False,
        "pros": ["No account fees", "Best online banking"],
        "cons": ["French only", "Must already be resident"],
    },
]

_APOSTILLE_DOCUMENTS: dict[str, tuple[str, str]] = {
    # document answer value -> (answer key holding the state, display name)
    "birth_cert": ("birth_state", "Birth Certificate"),
    "marriage_cert": ("marriage_state", "Marriage Certificate"),
}


# ----------------------------------------------------------------------
# Arithmetic helpers
# ----------------------------------------------------------------------

def parse_currency(value: Any) -> int:
    """Digits only: ``"€500,000"`` → 500000; nothing numeric → 0."""
    digits = re.sub(r"[^0-9]", "", str(value or ""))
    if not digits:
        return 0
    if len(digits) > len(str(MAX_AMOUNT)):
        return MAX_AMOUNT
    return min(int(digits), MAX_AMOUNT)


def parse_term(value: Any) -> int:
    """Loan term in years; non-numbers and terms outside 1-30 → 20."""
    try:
        years = int(str(value).strip())
    except (TypeError, ValueError):
        return DEFAULT_LOAN_TERM_YEARS
    if not 0 < years <= MAX_LOAN_TERM_YEARS:
        return DEFAULT_LOAN_TERM_YEARS
    return years


def rate_bands(ltv: int) -> tuple[str, str, str]:
    """(excellent, average, poor) rate ranges for a loan-to-value ratio."""
    if ltv <= 70:
        return "3.0% - 3.3%", "3.4% - 3.6%", "3.7%+"
    if ltv <= 80:
        return "3.2% - 3.5%", "3.5% - 3.7%", "3.8%+"
    return "3.4% - 3.7%", "3.7% - 4.0%", "4.0%+"


def monthly_payment(principal: float, annual_rate: float, years: int) -> int:
    """Standard amortised payment ``P·r(1+r)^n / ((1+r)^n − 1)``, rounded."""
    r = annual_rate / 12
    n = years * 12
    if r == 0:
        return round(principal / n)
    growth = (1 + r) ** n
    return round(principal * r * growth / (growth - 1))


def remaining_balance(
    principal: float, annual_rate: float, payment: float, months_paid: int
) -> int:
    balance = float(principal)
    r = annual_rate / 12
    for _ in range(months_paid):
        balance -= payment - balance * r
    return round(balance)


def early_repayment_penalty(balance: float, annual_rate: float) -> tuple[int, int, int]:
    """(six months of interest, 3% of balance, the lower of the two)."""
    six_months = round(balance * annual_rate * 0.5)
    three_pct = round(balance * 0.03)
    return six_months, three_pct, min(six_months, three_pct)


def _eur(amount: int) -> str:
    return f"€{amount:,}"


def _as_list(value: Answer | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [v for v in value if v]


def _as_text(value: Answer | None, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, list):
        return ", ".join(value) or default
    return value.strip() or default


class TemplateGenerator(ContentGenerator):
    """Fallback generator; has an answer for every flow.

    Args:
        registry: used for apostille office lookups
        clock: current time, for early-payoff arithmetic
    """

    def __init__(self, registry: QuestionSetRegistry, clock: Clock | None = None) -> None:
        self._registry = registry
        self._clock = clock or utcnow
        self._builders: dict[FlowType, Callable[[GenerationRequest, str], GeneratedContent]] = {
            FlowType.FRENCH_MORTGAGES: self._mortgage_guide,
            FlowType.PET_RELOCATION: self._pet_guide,
            FlowType.APOSTILLE: self._apostille_guide,
            FlowType.BANK_RATINGS: self._bank_guide,
        }

    async def generate(self, request: GenerationRequest) -> GeneratedContent:
        name = self._display_name(request)
        builder = self._builders.get(request.flow_type, self._default_document)
        content = builder(request, name)
        logger.info("Template content built for %s: %r", request.flow_type.value, content.title)
        return content

    @staticmethod
    def _display_name(request: GenerationRequest) -> str:
        profile = request.profile
        for candidate in (request.identity, profile.get("first_name"), profile.get("display_name")):
            if candidate and str(candidate).strip():
                return str(candidate).strip()
        return "Member"

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @staticmethod
    def _default_document(request: GenerationRequest, name: str) -> GeneratedContent:
        return GeneratedContent(
            title=f"{name} - Document",
            sections=[ContentSection(body=DEFAULT_DOCUMENT_BODY)],
            ai_generated=False,
        )

    # ------------------------------------------------------------------
    # Guides
    # ------------------------------------------------------------------

    def _mortgage_guide(self, request: GenerationRequest, name: str) -> GeneratedContent:
        answers = request.answers
        purchase = parse_currency(answers.get("purchase_price")) or DEFAULT_PURCHASE_PRICE
        loan = parse_currency(answers.get("loan_amount")) or DEFAULT_LOAN_AMOUNT
        term = parse_term(answers.get("loan_term", DEFAULT_LOAN_TERM_YEARS))
        ltv = round(loan / purchase * 100)
        excellent, average, poor = rate_bands(ltv)
        payment = monthly_payment(loan, REFERENCE_RATE, term)
        location = _as_text(request.profile.get("target_location"), "France")

        sections = [
            ContentSection(
                heading="Your Loan at a Glance",
                items=[
                    f"Purchase price: {_eur(purchase)}",
                    f"Loan amount: {_eur(loan)}",
                    f"Down payment: {_eur(purchase - loan)} ({ltv}% LTV)",
                    f"Loan term: {term} years",
                    f"Target location: {location}",
                    f"Estimated monthly payment at 3.5%: {_eur(payment)}",
                ],
            ),
            ContentSection(
                heading="Excellent Offer (Best Case)",
                body="Use these benchmarks to assess whether mortgage offers are "
                     "excellent, average, or poor for your situation.",
                items=[
                    f"Interest Rate: {excellent}",
                    f"Monthly Payment: {_eur(payment - 50)} - {_eur(payment)}",
                    "Early Repayment Penalties (IRA): Waived or maximum 1%",
                    "Application Fees: Waived or under €500",
                    "Insurance: External insurance allowed",
                    "Guarantee Type: Surety bond with fees ~1%",
                ],
            ),
            ContentSection(
                heading="Average Offer (Acceptable)",
                items=[
                    f"Interest Rate: {average}",
                    f"Monthly Payment: {_eur(payment)} - {_eur(payment + 70)}",
                    "Early Repayment Penalties: Standard 6 months interest or 3%",
                    "Application Fees: €500 - €1,200",
                    "Insurance: Bank or external with approval",
                    "Guarantee Fees: 1.5% - 2%",
                ],
            ),
            ContentSection(
                heading="Poor Offer (Reject)",
                items=[
                    f"Interest Rate: {poor}",
                    f"Monthly Payment: {_eur(payment + 120)}+",
                    "Early Repayment Penalties: 3% with no flexibility",
                    "Application Fees: €1,500+",
                    "Insurance: Bank only, no external option",
                    "Only 1 offer or pressure tactics",
                ],
            ),
        ]

        payoff_year = parse_currency(answers.get("early_payoff_year"))
        years_until = payoff_year - self._clock().year if payoff_year else 0
        if 0 < years_until < term:
            balance = remaining_balance(loan, REFERENCE_RATE, payment, years_until * 12)
            six_months, three_pct, penalty = early_repayment_penalty(balance, REFERENCE_RATE)
            sections.append(ContentSection(
                heading=f"Early Payoff Analysis ({payoff_year})",
                body=f"Based on your plan to pay off in {payoff_year}, here's what to expect.",
                items=[
                    f"Estimated Remaining Balance: {_eur(balance)}",
                    f"Standard IRA (6 months interest): {_eur(six_months)}",
                    f"Maximum IRA (3% of balance): {_eur(three_pct)}",
                    f"Your Penalty (whichever is lower): {_eur(penalty)}",
                    f"Negotiate to have IRA penalties waived or reduced; saving "
                    f"{_eur(penalty)} could offset broker fees entirely.",
                ],
            ))

        sections.append(ContentSection(
            heading="Critical Questions to Ask",
            items=[
                "What is the nominal interest rate (taux nominal)?",
                "What is the APR/TAEG (includes all fees)?",
                "What are the early repayment penalties (IRA), and can they be waived?",
                "What insurance (assurance emprunteur) is required? Can I use external insurance?",
                "Is it a mortgage (hypothèque) or surety bond (caution)? What are the guarantee fees?",
            ],
        ))
        broker = _as_text(answers.get("using_broker"))
        if broker in ("considering", "no"):
            sections.append(ContentSection(
                heading="Working With a Broker",
                body="A courtier can submit your file to several banks at once and "
                     "often negotiates IRA waivers that direct applicants do not get.",
            ))
        sections.append(ContentSection(
            heading="Key French Mortgage Terms",
            items=[
                "Prêt immobilier: Mortgage loan",
                "Taux nominal: Nominal interest rate",
                "TAEG: Annual Percentage Rate (APR)",
                "Mensualité: Monthly payment",
                "IRA: Early repayment penalties",
                "Assurance emprunteur: Borrower insurance",
                "Offre de prêt: Loan offer",
                "Délai de réflexion: Cooling-off period (10 days)",
            ],
        ))

        return GeneratedContent(
            title="French Mortgage Evaluation Guide",
            subtitle=f"Personalized for {name}",
            sections=_numbered(sections, skip_first=True),
        )

    def _pet_guide(self, request: GenerationRequest, name: str) -> GeneratedContent:
        answers = request.answers
        pets = _as_list(answers.get("pet_type")) or ["dog"]
        travel = _as_text(answers.get("travel_method"), "unsure")
        chip_done = _as_text(answers.get("microchipped")) == "yes_iso"
        rabies_done = _as_text(answers.get("rabies_status")) == "current"
        flying = travel in ("air_cabin", "air_cargo", "flying_cabin", "flying_cargo")

        def status(done: bool) -> str:
            return "✅ Complete" if done else "⏳ Needed"

        sections = [
            ContentSection(
                heading="EU Entry Requirements for Pets",
                body="To bring your pet to France, you must meet these mandatory requirements:",
                items=[
                    f"ISO Microchip (15-digit) [{status(chip_done)}]: must be ISO 11784/11785 "
                    "compliant and implanted BEFORE the rabies vaccination.",
                    f"Rabies Vaccination [{status(rabies_done)}]: at least 21 days before travel, "
                    "administered by a licensed veterinarian.",
                    f"EU Health Certificate (APHIS Form 7001) [{status(False)}]: issued by a "
                    "USDA-accredited veterinarian within 10 days of travel, then endorsed by USDA APHIS.",
                ],
            ),
        ]

        timeline: list[str] = []
        if not chip_done:
            timeline.append("4+ months before: Get ISO 15-digit microchip implanted at your vet")
        if not rabies_done:
            timeline.append("4+ months before: Get rabies vaccination (must be AFTER microchip implantation)")
        timeline += [
            "30 days before: Confirm all vaccinations are current and microchip is registered",
            "21+ days before: Ensure rabies vaccination is at least 21 days old (EU requirement)",
        ]
        if flying:
            timeline += [
                "4-6 weeks before: Contact airline about pet policy, book pet on flight",
                "2-3 weeks before: Purchase airline-approved carrier/crate if needed",
            ]
        timeline += [
            "10 days before: Visit USDA-accredited vet for health examination and EU Health Certificate",
            "7-10 days before: Submit certificate to USDA APHIS for endorsement (or use VEHCS)",
            "Travel day: Carry all original documents with you (not in checked luggage)",
        ]
        move_date = _as_text(answers.get("move_date"))
        sections.append(ContentSection(
            heading="Your Personalized Timeline",
            body=f"Planned move: {move_date}" if move_date else "",
            items=timeline,
        ))

        if travel in ("air_cabin", "flying_cabin"):
            sections.append(ContentSection(
                heading="Flying with Pet in Cabin",
                items=[
                    "Pet + carrier must typically weigh under 8kg (17.6 lbs) total",
                    "Carrier must fit under the seat in front of you",
                    "Book early - cabin pet spots are very limited (often 1-2 per cabin)",
                    "Approximate fees: Air France $200, Delta $200, American $150, United $125 each way",
                ],
            ))
        elif travel in ("air_cargo", "flying_cargo"):
            sections.append(ContentSection(
                heading="Flying with Pet in Cargo",
                items=[
                    "IATA-approved hard-sided crate required",
                    "No sedatives - airlines prohibit sedated animals",
                    "Brachycephalic breeds (pugs, bulldogs, Persian cats) may be restricted",
                    "Cargo pet fees range $200-$500+ each way",
                ],
            ))

        departure = _as_text(answers.get("departure_state"))
        sections.append(ContentSection(
            heading="Document Checklist",
            body=f"Departing from {departure}." if departure else "",
            items=[
                "EU Health Certificate (APHIS 7001) - USDA endorsed original",
                "Rabies vaccination certificate (showing date and vaccine details)",
                "Microchip documentation (showing 15-digit ISO number)",
                "Your passport and travel documents",
            ],
        ))
        sections.append(ContentSection(
            heading="Arriving in France",
            items=[
                "Have all documents ready for inspection at customs",
                "Register with a local French veterinarian within the first few weeks",
                "Get a French pet passport (Passeport Européen pour Animaux)",
                "Update microchip registration (I-CAD) with your French address",
            ],
        ))

        return GeneratedContent(
            title="Pet Relocation Guide to France",
            subtitle=f"Personalized for {name} and your {_pet_label(pets)}",
            sections=_numbered(sections),
        )

    def _apostille_guide(self, request: GenerationRequest, name: str) -> GeneratedContent:
        answers, profile = request.answers, request.profile
        documents = _as_list(answers.get("documents_needed")) or ["birth_cert"]

        # state → documents, answers first then profile
        by_state: dict[str, list[str]] = {}
        for doc in documents:
            if doc not in _APOSTILLE_DOCUMENTS:
                continue
            state_key, label = _APOSTILLE_DOCUMENTS[doc]
            state = _as_text(answers.get(state_key)) or _as_text(profile.get(state_key))
            if state:
                by_state.setdefault(state, []).append(label)

        sections = [
            ContentSection(
                heading="What is an Apostille?",
                body="An apostille is an official certificate that authenticates the origin "
                     "of a public document for use in another country.\n\n"
                     "France is part of the Hague Apostille Convention (1961). Without an "
                     "apostille, French authorities cannot verify that your US document is legitimate.",
            ),
        ]
        for state, docs in by_state.items():
            office = self._registry.apostille_office(state)
            if office is None:
                sections.append(ContentSection(
                    heading=f"{state}: {', '.join(docs)}",
                    items=[
                        f"Contact the {state} Secretary of State (or equivalent office) for apostille service",
                        "Request a certified copy first if you only hold a photocopy",
                    ],
                ))
                continue
            sections.append(ContentSection(
                heading=f"{office.name}: {', '.join(docs)}",
                items=[
                    f"Agency: {office.agency}",
                    f"Method: {office.method}",
                    f"Cost: {office.cost} per document",
                    f"Processing time: {office.time}",
                    f"Website: {office.url}",
                ],
            ))

        urgency = _as_text(answers.get("urgency"), "flexible")
        if urgency == "asap":
            sections.append(ContentSection(
                heading="Expedited Options",
                items=[
                    "Ask the state office about expedited or walk-in service",
                    "Private apostille services can turn documents around in days for a fee",
                ],
            ))

        return GeneratedContent(
            title="Apostille Guide",
            subtitle=f"Customized for {name}",
            sections=_numbered(sections),
        )

    def _bank_guide(self, request: GenerationRequest, name: str) -> GeneratedContent:
        answers = request.answers
        needs = _as_list(answers.get("banking_needs")) or ["daily"]
        ranked = rank_banks(
            needs,
            english=_as_text(answers.get("english_support"), "preferred"),
            online=_as_text(answers.get("online_banking"), "important"),
        )

        sections = []
        for position, bank in enumerate(ranked[:3], start=1):
            sections.append(ContentSection(
                heading=f"#{position} {bank['name']} (rated {bank['rating']:.1f}/5)",
                items=[f"Pro: {p}" for p in bank["pros"]] + [f"Con: {c}" for c in bank["cons"]],
            ))
        sections.insert(0, ContentSection(
            heading="Your Top Recommended Banks",
            body="Based on your needs, here are the best banks for you:",
        ))

        return GeneratedContent(
            title="French Bank Comparison Guide",
            subtitle=f"Recommendations for {name}",
            sections=sections,
        )


def rank_banks(needs: list[str], *, english: str, online: str) -> list[dict[str, Any]]:
    """Score every bank against the member's needs, best first.

    Penalties: -2 when English is essential and missing, -1 when online
    banking is essential and missing, -1.5 when a mortgage is needed and
    not offered.  Ties keep catalogue order.
    """
    ranked = []
    for bank in _BANKS:
        score = bank["rating"]
        if english == "essential" and not bank["english"]:
            score -= 2
        if online == "essential" and not bank["online"]:
            score -= 1
        if "mortgage" in needs and not bank["mortgage"]:
            score -= 1.5
        ranked.append({**bank, "final_score": score})
    ranked.sort(key=lambda b: b["final_score"], reverse=True)
    return ranked


def _pet_label(pets: list[str]) -> str:
    if "both" in pets or ("dog" in pets and "cat" in pets):
        return "Dog & Cat"
    if "dog" in pets:
        return "Dog"
    if "cat" in pets:
        return "Cat"
    return pets[0].replace("_", " ").title() if pets else "Pet"


def _numbered(sections: list[ContentSection], skip_first: bool = False) -> list[ContentSection]:
    """Prefix headings with 1., 2., ... (optionally leaving a summary unnumbered)."""
    out = []
    n = 0
    for i, section in enumerate(sections):
        if skip_first and i == 0:
            out.append(section)
            continue
        n += 1
        out.append(section.model_copy(update={"heading": f"{n}. {section.heading}"}))
    return out
