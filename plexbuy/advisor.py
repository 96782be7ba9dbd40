import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from plexbuy.catalog import (
    SAMPLE_PRODUCTS,
    AffiliateLinker,
    ParsedQuery,
    build_product_filter,
    format_price,
    parse_query,
)
from plexbuy.errors import GenerationError, StoreError
from plexbuy.readiness import ReadinessGate, ReadinessResult

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {"en": "English", "hi": "Hindi"}

ADVICE_TEMPLATES = {
    "en": {
        "found": "Here are {count} {terms} options{budget} worth a look. {top_pick}"
                 "Compare specs, warranty and recent reviews before you buy, "
                 "and use the links to check today's prices.",
        "top_pick": "Top pick: {name} at {price}. ",
        "budget": " under {amount}",
        "sample": "I couldn't search the catalogue for {terms}{budget} just now, "
                  "so here are {count} popular picks from our store instead. {top_pick}"
                  "Please try again shortly for matches to your query.",
        "empty": "I couldn't find {terms} options{budget} right now. "
                 "Try a broader search or a slightly higher budget.",
    },
    "hi": {
        "found": "{terms}{budget} के लिए {count} अच्छे विकल्प मिले। {top_pick}"
                 "खरीदने से पहले स्पेसिफिकेशन, वारंटी और रिव्यू ज़रूर देखें, "
                 "और ताज़ा कीमत के लिए दिए गए लिंक देखें।",
        "top_pick": "सबसे अच्छा विकल्प: {name}, कीमत {price}। ",
        "budget": " ({amount} से कम)",
        "sample": "अभी {terms}{budget} के लिए कैटलॉग खोज नहीं हो सकी, "
                  "इसलिए हमारे स्टोर के {count} लोकप्रिय विकल्प देखें। {top_pick}"
                  "अपनी खोज के सही नतीजों के लिए थोड़ी देर बाद फिर कोशिश करें।",
        "empty": "{terms}{budget} के लिए अभी कोई विकल्प नहीं मिला। "
                 "थोड़ा बड़ा बजट या दूसरी खोज आज़माएं।",
    },
}

STATIC_ADVICE = (
    "We're having trouble preparing personalised advice right now. "
    "Here are a couple of popular picks while we sort it out. Please try again shortly."
)


def normalize_language(language: Optional[str]) -> str:
    return (language or "").strip().lower() or "en"


def templated_advice(parsed: ParsedQuery, products: List[Dict[str, Any]], language: str,
                     source: str = "database") -> str:
    template = ADVICE_TEMPLATES.get(language, ADVICE_TEMPLATES["en"])
    budget = template["budget"].format(amount=format_price(parsed.budget)) if parsed.budget else ""
    terms = parsed.terms or "product"

    if not products:
        return template["empty"].format(terms=terms, budget=budget)

    top = products[0]
    top_pick = template["top_pick"].format(name=top["name"], price=format_price(top["price"], top["currency"]))
    key = "sample" if source == "sample" else "found"
    return template[key].format(count=len(products), terms=terms, budget=budget, top_pick=top_pick)


def build_prompt(parsed: ParsedQuery, products: List[Dict[str, Any]], language: str,
                 source: str = "database") -> str:
    lines = [
        "You are PlexBuy, a friendly shopping advisor for Indian online shoppers.",
        f"Customer query: \"{parsed.text}\"",
    ]
    if parsed.budget:
        lines.append(f"Budget: up to {format_price(parsed.budget)}")

    if products:
        if source == "sample":
            lines.append("Catalogue search is unavailable; these are general popular picks, "
                         "not matches for the query. Say so briefly.")
        lines.append("Products available to recommend:")
        for i, p in enumerate(products, 1):
            lines.append(f"{i}. {p['name']} - {format_price(p['price'], p['currency'])}"
                         f"{' - rated ' + str(p['rating']) if p.get('rating') else ''}")
    else:
        lines.append("No matching products are in stock; give general buying advice.")

    lines.append(
        f"Reply in {LANGUAGE_NAMES.get(language, language)} in under 120 words. "
        "Mention only the listed products, say who each suits, and do not invent prices or links."
    )
    return "\n".join(lines)


class ShoppingAdvisor:
    """Turns a shopping query into advice text plus affiliate-linked products"""

    def __init__(self, gate: ReadinessGate, text_service, store_service,
                 linker: AffiliateLinker, max_products: int = 5):
        self.gate = gate
        self.text_service = text_service
        self.store_service = store_service
        self.linker = linker
        self.max_products = max_products

    def sample_products(self) -> List[Dict[str, Any]]:
        return [self.linker.shape_product(p) for p in SAMPLE_PRODUCTS]

    async def _find_products(self, parsed: ParsedQuery, readiness: ReadinessResult) -> Tuple[List[Dict[str, Any]], str]:
        if not readiness.store_service_ready:
            return list(SAMPLE_PRODUCTS), "sample"

        try:
            records = await self.store_service.find(build_product_filter(parsed), self.max_products)
        except StoreError as e:
            logger.warning(f"Product lookup failed, using sample products: {e}")
            return list(SAMPLE_PRODUCTS), "sample"
        return records, "database"

    async def _write_advice(self, parsed: ParsedQuery, products: List[Dict[str, Any]],
                            language: str, source: str, readiness: ReadinessResult) -> Tuple[str, bool]:
        if readiness.text_service_ready:
            try:
                advice = await self.text_service.generate(build_prompt(parsed, products, language, source))
                return advice, True
            except GenerationError as e:
                logger.warning(f"Advice generation failed, using template: {e}")
        return templated_advice(parsed, products, language, source), False

    async def advise(self, query: str, user_id: Optional[str] = None, language: Optional[str] = None) -> Dict[str, Any]:
        started = time.perf_counter()
        language = normalize_language(language)
        readiness = await self.gate.ensure_ready()

        parsed = parse_query(query)
        records, source = await self._find_products(parsed, readiness)
        products = [self.linker.shape_product(r) for r in records[:self.max_products]]
        advice, ai_generated = await self._write_advice(parsed, products, language, source, readiness)

        logger.info(f"Advised '{parsed.text}' for {user_id or 'anonymous'}: "
                    f"{len(products)} products from {source}, ai={ai_generated}")

        return {
            "success": True,
            "advice": advice,
            "products": products,
            "metadata": {
                "query": parsed.text,
                "searchTerms": parsed.terms,
                "budget": parsed.budget,
                "userId": user_id,
                "language": language,
                "aiGenerated": ai_generated,
                "productSource": source,
                "productCount": len(products),
                "services": readiness.as_services(),
                "processingTimeMs": round((time.perf_counter() - started) * 1000, 1),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        }

    def degraded_response(self, query: str, user_id: Optional[str] = None,
                          language: Optional[str] = None, error: Optional[str] = None) -> Dict[str, Any]:
        return {
            "success": False,
            "advice": STATIC_ADVICE,
            "products": self.sample_products(),
            "metadata": {
                "query": query,
                "userId": user_id,
                "language": normalize_language(language),
                "fallback": True,
                "error": error or "RequestProcessingError",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        }
