"""AI-backed generation of the initial priced BOQ."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, List, Optional, TypeVar

from .errors import GenerationError, IngestionParseError, is_quota_message, to_generation_error
from .ingest import parse_generation_output
from .models import Ledger, Source
from .project_meta import CountryOption, MeasurementStandard

try:  # pragma: no cover - optional dependency imported at runtime
    from openai import OpenAI
except ImportError:  # pragma: no cover - when openai package is unavailable
    OpenAI = None  # type: ignore

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MODEL = "gpt-4o-mini"

TRADE_SECTIONS = (
    ("Preliminaries", "site setup, insurance, temporary water and power"),
    ("Substructure", "excavation, earthwork support, concrete foundations, DPC"),
    ("Superstructure - Concrete/Frame", "columns, beams, suspended slabs, stairs"),
    ("Superstructure - Walling", "external brick/block walls, internal partitions"),
    ("Roofing", "structure, covering, drainage and gutters"),
    ("Openings", "exterior doors, interior doors, windows"),
    ("Internal Finishes", "floor finishes, wall plaster/paint/tile, ceiling finishes"),
    ("External Finishes", "plaster, paint, cladding"),
    ("MEP Services", "plumbing first fix and sanitaryware, electrical first fix and accessories"),
    ("External Works", "drainage, paving, fencing"),
)

RESPONSE_SHAPE = """{
  "projectSummary": {"projectType": "string", "structure": "string", "floors": "string",
    "measurementStandard": "string", "currency": "string", "currencySymbol": "string",
    "totalEstimatedCost": number, "notes": "string"},
  "boqItems": [{"tradeName": "string", "tradeTotal": number, "items": [{
    "id": "string", "itemNo": "string", "description": "string", "unit": "string",
    "quantity": number, "quantityFormula": "string", "rateMaterial": number, "rateLabor": number,
    "rateAnalysis": {"baseMaterial": number, "baseLabor": number, "plantAndEquipment": number,
      "overheadAndProfit": number, "narrative": "string"},
    "totalRate": number, "totalAmount": number, "remarks": "string"}]}],
  "assumptions": [{"category": "Quantity|Specification|Site Condition|General|Pricing", "text": "string"}],
  "recommendedSuppliers": [{"trade": "string", "name": "string", "phoneNumber": "string",
    "email": "string", "website": "string", "location": "string", "serviceLevel": "string",
    "estimatedQuote": "string", "specialization": "string", "typicalProjectSize": "string",
    "rating": number, "testimonial": "string"}],
  "isInsufficientInfo": boolean,
  "missingInfoReason": "string"
}"""


@dataclass(frozen=True)
class RetryPolicy:
    """Quota retry policy: ``retries`` extra attempts, delay doubling from ``initial_delay``."""

    retries: int = 3
    initial_delay: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return max(0.0, self.initial_delay * (2 ** (attempt - 1)))


@dataclass(frozen=True)
class Attachment:
    """Drawing or photo sent alongside the description (base64 payload)."""

    mime_type: str
    data: str


def call_with_quota_retry(
    action: Callable[[], T],
    *,
    policy: RetryPolicy,
    description: str,
    logger: logging.Logger = LOGGER,
    sleeper: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``action``, retrying only quota/rate-limit failures with exponential backoff."""

    attempt = 0
    while True:
        try:
            return action()
        except Exception as exc:
            if not is_quota_message(str(exc)):
                raise
            attempt += 1
            if attempt > policy.retries:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Quota exceeded for %s; retrying in %.2fs (%d/%d attempts)",
                description,
                delay,
                attempt,
                policy.retries,
            )
            sleeper(delay)


def create_system_prompt(country: CountryOption, year: Optional[int] = None) -> str:
    year = year or date.today().year
    return f"""You are a chief estimator and quantity surveyor with 20 years of experience
preparing detailed Bills of Quantities. You apply NRM1, NRM2, SMM7, CESMM4 and POMI correctly.

Context:
- Location: {country.name}
- Currency: {country.currency} ({country.currency_symbol})
- Year: {year}
- Use current material and labour market conditions in {country.name}.

Default assumptions unless the description says otherwise:
1. Wall height 3.0m floor to floor.
2. Foundations 1.2m deep (rubble masonry or RCC footings).
3. Slab thickness 150mm residential, 200mm commercial.
4. Walls 225mm external, 112.5mm internal partitions.
5. Openings: doors 0.9m x 2.1m, windows 1.5m x 1.5m.
6. Standard mid-range finishes unless "luxury" is specified.

Pricing:
- Use local trade/wholesale rates in {country.currency}; never convert from foreign currency.
- Use local prevailing labour wages.
- Include overhead and profit (15-20%; 7% for Asian or Gulf countries) unless stated.

Quantity take-off:
- Populate quantityFormula for EVERY item, e.g. "L: 15.0m x H: 3.0m = 45.0m2".
- When dimensions are missing, use the default assumptions and state them in the formula and remarks.

Output:
- Return pure JSON only, no prose.
- totalAmount must equal quantity * totalRate.
- List every assumption made in "assumptions".
- If the description is too vague to estimate, set isInsufficientInfo to true and explain in missingInfoReason.

JSON shape:
{RESPONSE_SHAPE}
"""


def build_task_prompt(description: str, standard: MeasurementStandard | str, country: CountryOption) -> str:
    label = standard.value if isinstance(standard, MeasurementStandard) else str(standard)
    sections = "\n".join(
        f"{idx}. {name} ({scope})" for idx, (name, scope) in enumerate(TRADE_SECTIONS, start=1)
    )
    return f"""Project scope description:
{description}

Standard: {label}

Task:
1. Identify all materials and trades required.
2. Price with trade/wholesale unit rates in {country.name} ({country.currency}); ignore retail prices.
3. Calculate quantities from the description or drawings and write the exact arithmetic in quantityFormula.
4. Recommend 3-5 real, well-rated suppliers in {country.name}.
5. Return the detailed priced BOQ as strict JSON.

Use exactly these sections, in this order, with 3-5 measured items each (no trade-level lump sums):
{sections}
"""


def _extract_response_text(response: object) -> Optional[str]:
    text: Any = None
    if hasattr(response, "output_text"):
        text = getattr(response, "output_text")
    elif hasattr(response, "choices"):
        choices = getattr(response, "choices")
        if choices:
            message = getattr(choices[0], "message", None)
            if isinstance(message, dict):
                text = message.get("content")
            elif message is not None:
                text = getattr(message, "content", None)
    if isinstance(text, list):
        text = "\n".join(part.get("text", "") if isinstance(part, dict) else str(part) for part in text)
    return text.strip() if text else None


def _extract_sources(response: object) -> List[Source]:
    """Collect ``url_citation`` annotations from a Responses API result."""

    sources: List[Source] = []
    seen: set[str] = set()
    for output in getattr(response, "output", None) or []:
        for content in getattr(output, "content", None) or []:
            for annotation in getattr(content, "annotations", None) or []:
                if getattr(annotation, "type", None) != "url_citation":
                    continue
                uri = getattr(annotation, "url", None)
                title = getattr(annotation, "title", None)
                if uri and title and uri not in seen:
                    seen.add(uri)
                    sources.append(Source(title=title, uri=uri))
    return sources


class BOQGenerator:
    """Calls the model and hands its output to the ingestion boundary."""

    def __init__(
        self,
        client: Any = None,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.05,
        web_search: bool = True,
        policy: RetryPolicy = RetryPolicy(),
        sleeper: Callable[[float], None] = time.sleep,
        api_key: Optional[str] = None,
    ) -> None:
        if client is None:
            if OpenAI is None:
                raise GenerationError("openai package is not installed")
            if not api_key:
                raise GenerationError("API key is missing.")
            client = OpenAI(api_key=api_key)
        self.client = client
        self.model = model
        self.temperature = temperature
        self.web_search = web_search
        self.policy = policy
        self.sleeper = sleeper

    def _build_input(
        self,
        description: str,
        standard: MeasurementStandard | str,
        country: CountryOption,
        attachment: Optional[Attachment],
    ) -> List[dict]:
        content: List[dict] = [{"type": "input_text", "text": build_task_prompt(description, standard, country)}]
        if attachment is not None:
            content.append(
                {"type": "input_image", "image_url": f"data:{attachment.mime_type};base64,{attachment.data}"}
            )
        return [
            {"role": "system", "content": create_system_prompt(country)},
            {"role": "user", "content": content},
        ]

    def request(
        self,
        description: str,
        standard: MeasurementStandard | str,
        country: CountryOption,
        attachment: Optional[Attachment] = None,
    ) -> object:
        """Send the request, retrying quota failures per :attr:`policy`."""

        kwargs: dict = {
            "model": self.model,
            "input": self._build_input(description, standard, country, attachment),
            "temperature": self.temperature,
        }
        if self.web_search:
            kwargs["tools"] = [{"type": "web_search_preview"}]
        return call_with_quota_retry(
            lambda: self.client.responses.create(**kwargs),
            policy=self.policy,
            description=f"BOQ generation ({country.code})",
            sleeper=self.sleeper,
        )

    def generate(
        self,
        description: str,
        standard: MeasurementStandard | str,
        country: CountryOption,
        attachment: Optional[Attachment] = None,
    ) -> Ledger:
        """Generate and ingest a ledger.

        Raises :class:`~autoqs.errors.QuotaExceededError`,
        :class:`~autoqs.errors.SafetyRejectionError` or
        :class:`~autoqs.errors.GenerationError` for collaborator failures and
        :class:`~autoqs.errors.IngestionParseError` for unusable output.
        """

        if not description.strip() and attachment is None:
            raise GenerationError("A project description or attachment is required.")
        try:
            response = self.request(description, standard, country, attachment)
        except Exception as exc:
            LOGGER.error("Generation request failed: %s", exc)
            raise to_generation_error(exc) from exc

        text = _extract_response_text(response)
        if not text:
            raise GenerationError("Empty response from AI model.")
        try:
            return parse_generation_output(text, country, sources=_extract_sources(response))
        except IngestionParseError:
            LOGGER.debug("Unparseable generator output: %s", text[:2000])
            raise


__all__ = [
    "BOQGenerator",
    "RetryPolicy",
    "Attachment",
    "call_with_quota_retry",
    "create_system_prompt",
    "build_task_prompt",
    "TRADE_SECTIONS",
    "DEFAULT_MODEL",
]
