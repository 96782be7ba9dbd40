import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

SEARCH_FIELDS = ("name", "category", "brand", "description")

FILLER_PHRASES = [
    'search for', 'find me', 'find', 'look for', 'show me', 'get me',
    'i need', 'i want', 'looking for', 'searching for', 'suggest me', 'suggest',
    'recommend me', 'recommend', 'where can i find', 'do you have', 'which is the',
    'what is the', 'please', 'best', 'good', 'a good', 'top', 'buy',
]

STOP_WORDS = {'a', 'an', 'the', 'and', 'or', 'for', 'of', 'with', 'to', 'in', 'on', 'me', 'my', 'some', 'any', 'rs', 'inr'}

BUDGET_PATTERN = re.compile(
    r'(?:under|below|less than|within|upto|up to|budget(?: of)?|max(?:imum)?)\s*:?\s*'
    r'(?:rs\.?|inr|₹|\$)?\s*(\d[\d,]*(?:\.\d+)?)\s*(k)?\b',
    re.IGNORECASE
)

CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$"}

SAMPLE_PRODUCTS = [
    {
        "id": "sample-laptop-1",
        "name": "Lenovo IdeaPad Slim 3 (Intel Core i5, 16GB RAM, 512GB SSD)",
        "price": 47990,
        "currency": "INR",
        "category": "Laptops",
        "brand": "Lenovo",
        "rating": 4.3,
        "image": "https://m.media-amazon.com/images/I/71vvXGmdKWL._SL1500_.jpg",
        "description": "Everyday 15.6 inch laptop with a full HD display and all-day battery.",
        "url": "https://www.amazon.in/dp/B0CTHQ4N4Q",
    },
    {
        "id": "sample-earbuds-1",
        "name": "boAt Airdopes 141 Wireless Earbuds",
        "price": 1099,
        "currency": "INR",
        "category": "Audio",
        "brand": "boAt",
        "rating": 4.1,
        "image": "https://m.media-amazon.com/images/I/61KNJav3S9L._SL1500_.jpg",
        "description": "Bluetooth earbuds with 42 hours of playback and low-latency mode.",
        "url": "https://www.flipkart.com/boat-airdopes-141/p/itmb4f7c0a1d2e3f",
    },
]


@dataclass(frozen=True)
class ParsedQuery:
    text: str
    terms: str
    keywords: List[str] = field(default_factory=list)
    budget: Optional[float] = None


def extract_budget(message: str) -> Optional[float]:
    """Extract a price ceiling such as 'under 50000' or 'below 50k'"""
    match = BUDGET_PATTERN.search(message)
    if not match:
        return None
    amount = float(match.group(1).replace(",", ""))
    if match.group(2):
        amount *= 1000
    return amount


def _singular(word: str) -> str:
    if len(word) > 3 and word.endswith('s') and not word.endswith('ss'):
        return word[:-1]
    return word


def extract_search_terms(message: str) -> str:
    """Strip filler phrases and budget clauses, leaving the product words"""
    msg = BUDGET_PATTERN.sub(' ', message.lower())
    for phrase in sorted(FILLER_PHRASES, key=len, reverse=True):
        msg = re.sub(rf'\b{re.escape(phrase)}\b', ' ', msg)
    msg = re.sub(r'[^\w\s-]', ' ', msg)
    return ' '.join(word for word in msg.split() if word not in STOP_WORDS)


def parse_query(query: str) -> ParsedQuery:
    text = (query or "").strip()
    terms = extract_search_terms(text)
    keywords = []
    for word in terms.split():
        if word in STOP_WORDS or len(word) < 2 or word.isdigit():
            continue
        word = _singular(word)
        if word not in keywords:
            keywords.append(word)
    return ParsedQuery(text=text, terms=terms or text, keywords=keywords, budget=extract_budget(text))


def build_product_filter(parsed: ParsedQuery) -> Dict[str, Any]:
    """MongoDB filter matching any keyword in the text fields, within budget"""
    clauses = []
    if parsed.keywords:
        pattern = "|".join(re.escape(k) for k in parsed.keywords)
        clauses.append({"$or": [{name: {"$regex": pattern, "$options": "i"}} for name in SEARCH_FIELDS]})
    if parsed.budget is not None:
        clauses.append({"price": {"$lte": parsed.budget}})

    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def parse_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    numbers = re.findall(r'[0-9]+(?:\.[0-9]+)?', str(value).replace(",", ""))
    return float(numbers[0]) if numbers else None


def format_price(price: Optional[float], currency: str = "INR") -> str:
    if price is None:
        return "Price not available"
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    if float(price).is_integer():
        return f"{symbol}{int(price):,}"
    return f"{symbol}{price:,.2f}"


class AffiliateLinker:
    """Adds PlexBuy's partner identifiers to store links"""

    def __init__(self, amazon_tag: str, flipkart_id: str):
        self.amazon_tag = amazon_tag
        self.flipkart_id = flipkart_id

    def tag_url(self, url: str) -> str:
        parts = urlsplit(url)
        host = parts.netloc.lower()
        if "amazon." in host:
            param = ("tag", self.amazon_tag)
        elif "flipkart." in host:
            param = ("affid", self.flipkart_id)
        else:
            return url

        query = dict(parse_qsl(parts.query))
        query[param[0]] = param[1]
        return urlunsplit(parts._replace(query=urlencode(query)))

    def search_links(self, terms: str) -> Dict[str, str]:
        return {
            "amazon": f"https://www.amazon.in/s?{urlencode({'k': terms, 'tag': self.amazon_tag})}",
            "flipkart": f"https://www.flipkart.com/search?{urlencode({'q': terms, 'affid': self.flipkart_id})}",
        }

    def shape_product(self, record: Dict[str, Any]) -> Dict[str, Any]:
        name = record.get("name") or record.get("title") or "Unknown Product"
        url = record.get("url") or record.get("link") or ""

        links = {}
        if url:
            url = self.tag_url(url)
            links["store"] = url
        links.update(self.search_links(name))

        return {
            "id": str(record.get("id") or ""),
            "name": name,
            "price": parse_price(record.get("price")),
            "currency": record.get("currency") or "INR",
            "category": record.get("category") or "",
            "brand": record.get("brand") or "",
            "rating": record.get("rating"),
            "image": record.get("image") or "",
            "description": record.get("description") or "",
            "url": url,
            "affiliateLinks": links,
        }
